from __future__ import annotations

import logging
import time
from typing import BinaryIO, Callable, Optional

from packsmith.config.models import Manifest
from packsmith.deb.ar import assemble
from packsmith.deb.control import build_control_archive
from packsmith.deb.data import build_data_archive
from packsmith.deb.signer import Signer
from packsmith.packagers.base import Packager


class DebPackager(Packager):
    def __init__(self, logger=None, clock: Optional[Callable[[], float]] = None) -> None:
        self._logger = logger or logging.getLogger("packsmith.deb")
        self._clock = clock or time.time

    @property
    def name(self) -> str:
        return "deb"

    def package(self, manifest: Manifest, sink: BinaryIO) -> None:
        mtime = int(self._clock())
        data = build_data_archive(manifest, mtime)
        self._logger.info(
            "data_archive_built",
            extra={
                "extra": {
                    "package": manifest.name,
                    "files": len(data.checksums),
                    "installed_size": data.installed_size,
                    "bytes": len(data.content),
                }
            },
        )
        control = build_control_archive(manifest, data.checksums, data.installed_size, mtime)

        signature = manifest.deb.signature
        signer = Signer(key=signature.key, passphrase=signature.passphrase)
        assemble(sink, control, data.content, signer, mtime)
        self._logger.info(
            "deb_written",
            extra={"extra": {"package": manifest.name, "version": manifest.version, "signed": signer.configured}},
        )
