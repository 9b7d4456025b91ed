from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from packsmith.errors import KeyFormatError

CRC24_INIT = 0xB704CE
CRC24_POLY = 0x1864CFB
LINE_LENGTH = 64


@dataclass
class ArmorBlock:
    block_type: str
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)


def crc24(data: bytes) -> int:
    crc = CRC24_INIT
    for byte in data:
        crc ^= byte << 16
        for _ in range(8):
            crc <<= 1
            if crc & 0x1000000:
                crc ^= CRC24_POLY
    return crc & 0xFFFFFF


def decode(text: str) -> ArmorBlock:
    lines = [line.strip() for line in text.splitlines()]
    start = _find_begin(lines)
    block_type = lines[start][len("-----BEGIN ") : -len("-----")]
    end_marker = f"-----END {block_type}-----"

    index = start + 1
    headers: Dict[str, str] = {}
    while index < len(lines) and ": " in lines[index]:
        key, _, value = lines[index].partition(": ")
        headers[key] = value
        index += 1
    if index < len(lines) and lines[index] == "":
        index += 1

    body_lines: List[str] = []
    checksum: Optional[str] = None
    while True:
        if index >= len(lines):
            raise KeyFormatError(f"armor block is missing its '{end_marker}' line")
        line = lines[index]
        index += 1
        if line == end_marker:
            break
        if line.startswith("=") and len(line) == 5:
            checksum = line[1:]
            continue
        if line:
            body_lines.append(line)

    try:
        body = base64.b64decode("".join(body_lines), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise KeyFormatError("armor body is not valid base64") from exc

    if checksum is not None:
        try:
            expected = int.from_bytes(base64.b64decode(checksum, validate=True), "big")
        except (binascii.Error, ValueError) as exc:
            raise KeyFormatError("armor checksum is not valid base64") from exc
        if crc24(body) != expected:
            raise KeyFormatError("armor checksum mismatch")

    return ArmorBlock(block_type=block_type, body=body, headers=headers)


def encode(block_type: str, body: bytes, headers: Optional[Dict[str, str]] = None) -> str:
    lines = [f"-----BEGIN {block_type}-----"]
    for key, value in (headers or {}).items():
        lines.append(f"{key}: {value}")
    lines.append("")
    encoded = base64.b64encode(body).decode("ascii")
    lines.extend(encoded[i : i + LINE_LENGTH] for i in range(0, len(encoded), LINE_LENGTH))
    lines.append("=" + base64.b64encode(crc24(body).to_bytes(3, "big")).decode("ascii"))
    lines.append(f"-----END {block_type}-----")
    return "\n".join(lines)


def _find_begin(lines: List[str]) -> int:
    for index, line in enumerate(lines):
        if line.startswith("-----BEGIN ") and line.endswith("-----") and len(line) > 16:
            return index
    raise KeyFormatError("cannot decode private key (expecting ascii-armor)")
