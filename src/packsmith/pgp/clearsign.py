from __future__ import annotations

import hashlib
from typing import List

from packsmith.pgp import armor
from packsmith.pgp.keys import SecretKey
from packsmith.pgp.packets import TAG_SIGNATURE, encode_packet

HASH_SHA256 = 8
SIGNATURE_CANONICAL_TEXT = 0x01

SUBPACKET_CREATION_TIME = 2
SUBPACKET_ISSUER = 16
SUBPACKET_ISSUER_FINGERPRINT = 33

SIGNED_MESSAGE_HEADER = "-----BEGIN PGP SIGNED MESSAGE-----"
SIGNATURE_BLOCK = "PGP SIGNATURE"


def text_lines(text: str) -> List[str]:
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return [line.rstrip(" \t\r") for line in lines]


def canonical_text(text: str) -> bytes:
    return "\r\n".join(text_lines(text)).encode("utf-8")


def signature_packet(key: SecretKey, data: bytes, created: int) -> bytes:
    hashed = _subpacket(SUBPACKET_CREATION_TIME, created.to_bytes(4, "big"))
    hashed += _subpacket(SUBPACKET_ISSUER_FINGERPRINT, b"\x04" + key.fingerprint)
    unhashed = _subpacket(SUBPACKET_ISSUER, key.key_id)

    prefix = bytes([4, SIGNATURE_CANONICAL_TEXT, key.algorithm, HASH_SHA256])
    prefix += len(hashed).to_bytes(2, "big") + hashed
    digest = hashlib.sha256()
    digest.update(data)
    digest.update(prefix)
    digest.update(b"\x04\xff" + len(prefix).to_bytes(4, "big"))
    value = digest.digest()

    body = prefix + len(unhashed).to_bytes(2, "big") + unhashed + value[:2] + key.sign_digest(value)
    return encode_packet(TAG_SIGNATURE, body)


def clearsign(text: str, key: SecretKey, created: int) -> str:
    packet = signature_packet(key, canonical_text(text), created)
    escaped = ["- " + line if line.startswith("-") else line for line in text_lines(text)]
    parts = [SIGNED_MESSAGE_HEADER, "Hash: SHA256", ""]
    parts.extend(escaped)
    parts.append(armor.encode(SIGNATURE_BLOCK, packet))
    return "\n".join(parts)


def _subpacket(kind: int, payload: bytes) -> bytes:
    return bytes([len(payload) + 1, kind]) + payload
