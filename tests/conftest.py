from __future__ import annotations

import hashlib
import io
import os
import tarfile
from dataclasses import dataclass
from typing import Callable, List, Optional

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa, utils
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.decrepit.ciphers.modes import CFB
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, PublicFormat

from packsmith.pgp import armor
from packsmith.pgp.keys import ED25519_OID, PUBKEY_EDDSA, PUBKEY_RSA, S2K, S2K_ITERATED, S2K_USAGE_SHA1
from packsmith.pgp.packets import TAG_SECRET_KEY, TAG_USER_ID, PacketReader, encode_mpi, encode_packet, iter_packets

KEY_CREATED = 1_600_000_000
USER_ID = "Release Bot <release@example.com>"


@dataclass
class ArEntry:
    name: str
    mtime: int
    mode: str
    data: bytes


def _public_material(private_key) -> tuple:
    if isinstance(private_key, Ed25519PrivateKey):
        raw = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        point = encode_mpi(int.from_bytes(b"\x40" + raw, "big"))
        return PUBKEY_EDDSA, bytes([len(ED25519_OID)]) + ED25519_OID + point
    numbers = private_key.public_key().public_numbers()
    return PUBKEY_RSA, encode_mpi(numbers.n) + encode_mpi(numbers.e)


def _secret_material(private_key) -> bytes:
    if isinstance(private_key, Ed25519PrivateKey):
        seed = private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
        return encode_mpi(int.from_bytes(seed, "big"))
    numbers = private_key.private_numbers()
    p, q = sorted((numbers.p, numbers.q))
    return encode_mpi(numbers.d) + encode_mpi(p) + encode_mpi(q) + encode_mpi(pow(p, -1, q))


def export_secret_key(
    private_key,
    user_id: Optional[str] = USER_ID,
    passphrase: Optional[str] = None,
    usage: int = S2K_USAGE_SHA1,
) -> str:
    algorithm, public = _public_material(private_key)
    body = bytes([4]) + KEY_CREATED.to_bytes(4, "big") + bytes([algorithm]) + public
    secret = _secret_material(private_key)
    if passphrase is None:
        body += b"\x00" + secret + (sum(secret) & 0xFFFF).to_bytes(2, "big")
    else:
        s2k = S2K(kind=S2K_ITERATED, hash_algorithm=8, salt=os.urandom(8), coded_count=96)
        iv = os.urandom(16)
        key = s2k.derive_key(passphrase.encode("utf-8"), 32)
        if usage == S2K_USAGE_SHA1:
            plain = secret + hashlib.sha1(secret).digest()
        else:
            plain = secret + (sum(secret) & 0xFFFF).to_bytes(2, "big")
        encryptor = Cipher(algorithms.AES(key), CFB(iv)).encryptor()
        body += bytes([usage, 9]) + s2k.encode() + iv + encryptor.update(plain) + encryptor.finalize()
    packets = encode_packet(TAG_SECRET_KEY, body)
    if user_id is not None:
        packets += encode_packet(TAG_USER_ID, user_id.encode("utf-8"))
    return armor.encode("PGP PRIVATE KEY BLOCK", packets) + "\n"


def verify_clearsigned(block: str, private_key) -> List[str]:
    assert block.startswith("-----BEGIN PGP SIGNED MESSAGE-----\nHash: SHA256\n\n")
    rest = block.split("\n\n", 1)[1]
    text, signature = rest.split("\n-----BEGIN PGP SIGNATURE-----", 1)
    packet = next(iter_packets(armor.decode("-----BEGIN PGP SIGNATURE-----" + signature).body))
    assert packet.tag == 2

    body = packet.body
    assert body[0] == 4
    assert body[1] == 0x01
    assert body[3] == 8
    hashed_length = int.from_bytes(body[4:6], "big")
    prefix = body[: 6 + hashed_length]
    position = 6 + hashed_length
    position += 2 + int.from_bytes(body[position : position + 2], "big")
    left16 = body[position : position + 2]
    reader = PacketReader(body[position + 2 :])

    lines = [line[2:] if line.startswith("- ") else line for line in text.split("\n")]
    digest = hashlib.sha256()
    digest.update("\r\n".join(line.rstrip(" \t") for line in lines).encode("utf-8"))
    digest.update(prefix)
    digest.update(b"\x04\xff" + len(prefix).to_bytes(4, "big"))
    value = digest.digest()
    assert value[:2] == left16

    public_key = private_key.public_key()
    if isinstance(private_key, Ed25519PrivateKey):
        r, s = reader.mpi(), reader.mpi()
        public_key.verify(r.to_bytes(32, "big") + s.to_bytes(32, "big"), value)
    else:
        size = (public_key.key_size + 7) // 8
        public_key.verify(
            reader.mpi().to_bytes(size, "big"), value, padding.PKCS1v15(), utils.Prehashed(hashes.SHA256())
        )
    return lines


def parse_ar(blob: bytes) -> List[ArEntry]:
    assert blob[:8] == b"!<arch>\n"
    position = 8
    entries: List[ArEntry] = []
    while position < len(blob):
        header = blob[position : position + 60]
        assert header[58:60] == b"`\n"
        size = int(header[48:58].decode("ascii").strip())
        position += 60
        entries.append(
            ArEntry(
                name=header[:16].decode("ascii").strip(),
                mtime=int(header[16:28].decode("ascii").strip()),
                mode=header[40:48].decode("ascii").strip(),
                data=blob[position : position + size],
            )
        )
        position += size + size % 2
    return entries


def read_tar(data: bytes) -> List[tuple]:
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        result = []
        for member in tar.getmembers():
            content = tar.extractfile(member).read() if member.isfile() else None
            result.append((member, content))
        return result


@pytest.fixture(scope="session")
def ed25519_key():
    return Ed25519PrivateKey.generate()


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def export_key() -> Callable[..., str]:
    return export_secret_key


@pytest.fixture
def verify_signature() -> Callable[[str, object], List[str]]:
    return verify_clearsigned


@pytest.fixture
def ar_entries() -> Callable[[bytes], List[ArEntry]]:
    return parse_ar


@pytest.fixture
def tar_entries() -> Callable[[bytes], List[tuple]]:
    return read_tar


@pytest.fixture
def make_file(tmp_path):
    def _make(name: str, content: bytes, mode: int = 0o644) -> str:
        path = tmp_path / "src" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        os.chmod(path, mode)
        return str(path)

    return _make
