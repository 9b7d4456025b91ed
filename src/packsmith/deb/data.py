from __future__ import annotations

import hashlib
import io
import os
import posixpath
import stat
import tarfile
import time
import zlib
from typing import BinaryIO, List, Optional, Set

from packsmith.config.models import Manifest
from packsmith.errors import ArchiveError, PackageIOError
from packsmith.types import ChecksumRecord, DataArchive


class _DigestReader:
    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle
        self._digest = hashlib.md5()
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._handle.read(size)
        self._digest.update(chunk)
        self.count += len(chunk)
        return chunk

    def hexdigest(self) -> str:
        return self._digest.hexdigest()


def parent_directories(dst: str) -> List[str]:
    paths: List[str] = []
    base = dst.lstrip("/")
    while True:
        base = posixpath.dirname(base)
        if not base:
            break
        paths.append(base)
    paths.reverse()
    return paths


def _directory_entry(path: str, mtime: int) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name=path + "/")
    info.type = tarfile.DIRTYPE
    info.mode = 0o755
    info.mtime = mtime
    info.uname = info.gname = "root"
    return info


def _create_tree(tar: tarfile.TarFile, dst: str, created: Set[str], mtime: int) -> None:
    for path in parent_directories(dst):
        if path in created:
            continue
        try:
            tar.addfile(_directory_entry(path, mtime))
        except (tarfile.TarError, zlib.error) as exc:
            raise ArchiveError(f"failed to create folder {path}") from exc
        created.add(path)


def _copy_to_tar_and_digest(tar: tarfile.TarFile, src: str, dst: str, mtime: int) -> ChecksumRecord:
    if os.path.isdir(src):
        raise ArchiveError(f"cannot add {src} to the archive: source is a directory, list its files instead")
    try:
        handle = open(src, "rb")
    except OSError as exc:
        raise PackageIOError(f"could not add {src} to the archive") from exc
    with handle:
        try:
            status = os.fstat(handle.fileno())
        except OSError as exc:
            raise PackageIOError(f"could not stat {src}") from exc
        info = tarfile.TarInfo(name=dst.lstrip("/"))
        info.size = status.st_size
        info.mode = stat.S_IMODE(status.st_mode)
        info.mtime = mtime
        info.uname = info.gname = "root"
        reader = _DigestReader(handle)
        try:
            tar.addfile(info, reader)
        except OSError as exc:
            raise PackageIOError(f"failed to copy {src} into data.tar.gz") from exc
        except (tarfile.TarError, zlib.error) as exc:
            raise ArchiveError(f"cannot write header of {info.name} to data.tar.gz") from exc
    return ChecksumRecord(path=info.name, md5=reader.hexdigest(), size=reader.count)


def build_data_archive(manifest: Manifest, mtime: Optional[int] = None) -> DataArchive:
    stamp = int(time.time()) if mtime is None else mtime
    buffer = io.BytesIO()
    created: Set[str] = set()
    checksums: List[ChecksumRecord] = []
    try:
        with tarfile.open(fileobj=buffer, mode="w:gz", format=tarfile.GNU_FORMAT) as tar:
            for src, dst in manifest.iter_files():
                _create_tree(tar, dst, created, stamp)
                checksums.append(_copy_to_tar_and_digest(tar, src, dst, stamp))
    except (tarfile.TarError, zlib.error) as exc:
        raise ArchiveError("closing data.tar.gz") from exc
    return DataArchive(
        content=buffer.getvalue(),
        checksums=checksums,
        size=sum(record.size for record in checksums),
    )
