from __future__ import annotations

import threading
from typing import Dict, List

from packsmith.deb.packager import DebPackager
from packsmith.errors import FormatError
from packsmith.packagers.base import Packager


class PackagerRegistry:
    def __init__(self) -> None:
        self._packagers: Dict[str, Packager] = {}
        self._lock = threading.Lock()

    def register(self, fmt: str, packager: Packager) -> None:
        with self._lock:
            self._packagers[fmt] = packager

    def lookup(self, fmt: str) -> Packager:
        packager = self._packagers.get(fmt)
        if packager is None:
            raise FormatError(f"no packager registered for the format {fmt}")
        return packager

    def formats(self) -> List[str]:
        return sorted(self._packagers)


def default_registry(logger=None) -> PackagerRegistry:
    registry = PackagerRegistry()
    for packager in (DebPackager(logger),):
        registry.register(packager.name, packager)
    return registry
