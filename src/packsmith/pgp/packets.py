from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from packsmith.errors import KeyFormatError

TAG_SIGNATURE = 2
TAG_SECRET_KEY = 5
TAG_PUBLIC_KEY = 6
TAG_SECRET_SUBKEY = 7
TAG_USER_ID = 13

SECRET_KEY_TAGS = (TAG_SECRET_KEY, TAG_SECRET_SUBKEY)


@dataclass
class Packet:
    tag: int
    body: bytes


class PacketReader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read(self, size: int) -> bytes:
        if size < 0 or size > self.remaining:
            raise KeyFormatError("cannot read packets of private key: truncated data")
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def byte(self) -> int:
        return self.read(1)[0]

    def uint(self, size: int) -> int:
        return int.from_bytes(self.read(size), "big")

    def mpi(self) -> int:
        bits = self.uint(2)
        return int.from_bytes(self.read((bits + 7) // 8), "big")

    def rest(self) -> bytes:
        return self.read(self.remaining)


def iter_packets(data: bytes) -> Iterator[Packet]:
    reader = PacketReader(data)
    while reader.remaining:
        offset = reader.position
        ctb = reader.byte()
        if not ctb & 0x80:
            raise KeyFormatError(f"cannot read packets of private key: invalid packet header at offset {offset}")
        if ctb & 0x40:
            tag = ctb & 0x3F
            length = _new_format_length(reader)
        else:
            tag = (ctb >> 2) & 0x0F
            length_type = ctb & 0x03
            if length_type == 3:
                length = reader.remaining
            else:
                length = reader.uint((1, 2, 4)[length_type])
        yield Packet(tag=tag, body=reader.read(length))


def _new_format_length(reader: PacketReader) -> int:
    first = reader.byte()
    if first < 192:
        return first
    if first < 224:
        return ((first - 192) << 8) + reader.byte() + 192
    if first == 255:
        return reader.uint(4)
    raise KeyFormatError("cannot read packets of private key: partial body lengths are not supported")


def encode_packet(tag: int, body: bytes) -> bytes:
    length = len(body)
    if length < 192:
        header = bytes([length])
    elif length < 8384:
        length -= 192
        header = bytes([(length >> 8) + 192, length & 0xFF])
    else:
        header = b"\xff" + length.to_bytes(4, "big")
    return bytes([0xC0 | tag]) + header + body


def encode_mpi(value: int) -> bytes:
    bits = value.bit_length()
    return bits.to_bytes(2, "big") + value.to_bytes((bits + 7) // 8, "big")
