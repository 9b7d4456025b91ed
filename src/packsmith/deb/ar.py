from __future__ import annotations

import time
from typing import BinaryIO, Optional

from packsmith.deb.signer import Signer
from packsmith.errors import ArchiveError, PackageIOError

AR_MAGIC = b"!<arch>\n"
AR_FMAG = b"`\n"

DEBIAN_BINARY = "debian-binary"
CONTROL_MEMBER = "control.tar.gz"
DATA_MEMBER = "data.tar.gz"
SIGNATURE_MEMBER = "_gpgorigin"
FORMAT_VERSION = b"2.0\n"


def member_header(name: str, size: int, mtime: int, mode: int = 0o644) -> bytes:
    if len(name) > 16:
        raise ArchiveError(f"ar member name {name!r} is longer than 16 characters")
    header = (
        name.ljust(16)
        + f"{mtime}".ljust(12)
        + "0".ljust(6)
        + "0".ljust(6)
        + f"{mode:o}".ljust(8)
        + f"{size}".ljust(10)
    ).encode("ascii") + AR_FMAG
    if len(header) != 60:
        raise ArchiveError(f"invalid ar header for {name}")
    return header


class ArWriter:
    def __init__(self, sink: BinaryIO, mtime: Optional[int] = None) -> None:
        self._sink = sink
        self._mtime = int(time.time()) if mtime is None else mtime

    def write_global_header(self) -> None:
        self._sink.write(AR_MAGIC)

    def add(self, name: str, body: bytes) -> None:
        self._sink.write(member_header(name, len(body), self._mtime))
        self._sink.write(body)
        if len(body) % 2 == 1:
            self._sink.write(b"\n")


def _add_member(writer: ArWriter, name: str, body: bytes, signer: Optional[Signer]) -> None:
    try:
        writer.add(name, body)
    except OSError as exc:
        raise PackageIOError(f"cannot add {name} to deb") from exc
    if signer is not None:
        signer.register(name, body)


def assemble(sink: BinaryIO, control: bytes, data: bytes, signer: Signer, mtime: Optional[int] = None) -> None:
    writer = ArWriter(sink, mtime)
    try:
        writer.write_global_header()
    except OSError as exc:
        raise PackageIOError("cannot write ar header to deb file") from exc
    _add_member(writer, DEBIAN_BINARY, FORMAT_VERSION, signer)
    _add_member(writer, CONTROL_MEMBER, control, signer)
    _add_member(writer, DATA_MEMBER, data, signer)

    signature = signer.sign()
    if not signature:
        return
    _add_member(writer, SIGNATURE_MEMBER, signature, None)
