from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO

from packsmith.config.models import Manifest


class Packager(ABC):
    @abstractmethod
    def package(self, manifest: Manifest, sink: BinaryIO) -> None:
        raise NotImplementedError

    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError
