from __future__ import annotations

import logging
import os
from typing import BinaryIO, Optional

from packsmith.config.loader import ConfigLoader
from packsmith.errors import BuildError, FormatError, PackageIOError, PackagerError
from packsmith.packagers.registry import PackagerRegistry, default_registry


def format_for_target(target: str) -> str:
    extension = os.path.splitext(target)[1]
    if not extension[1:]:
        raise FormatError(f"cannot infer the package format from target '{target}'")
    return extension[1:]


def package(
    config_path: str,
    target: str,
    registry: Optional[PackagerRegistry] = None,
    logger=None,
) -> str:
    logger = logger or logging.getLogger("packsmith")
    registry = registry or default_registry(logger)

    loaded = ConfigLoader(config_path).load()
    fmt = format_for_target(target)
    logger.info(
        "package_start",
        extra={"extra": {"config": config_path, "config_checksum": loaded.checksum, "format": fmt, "target": target}},
    )
    try:
        packager = registry.lookup(fmt)
    except FormatError as exc:
        raise FormatError(f"cannot use packager '{fmt}'") from exc

    with _open_target(target) as handle:
        try:
            packager.package(loaded.manifest, handle)
        except PackagerError as exc:
            logger.error("package_failed", extra={"extra": {"format": fmt, "target": target, "error": str(exc)}})
            raise BuildError(f"packager '{fmt}' failed") from exc
    logger.info(
        "package_created",
        extra={"extra": {"format": fmt, "packager": packager.name, "target": target}},
    )
    return fmt


def _open_target(target: str) -> BinaryIO:
    try:
        return open(target, "wb")
    except OSError as exc:
        raise PackageIOError(f"cannot create target file '{target}'") from exc
