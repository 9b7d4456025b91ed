from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa, utils
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.decrepit.ciphers.modes import CFB
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from packsmith.errors import KeyFormatError, PassphraseError, SigningError
from packsmith.pgp import armor
from packsmith.pgp.packets import SECRET_KEY_TAGS, TAG_USER_ID, PacketReader, encode_mpi, iter_packets

PUBKEY_RSA = 1
PUBKEY_RSA_SIGN_ONLY = 3
PUBKEY_EDDSA = 22

ED25519_OID = bytes.fromhex("2b06010401da470f01")

S2K_USAGE_NONE = 0
S2K_USAGE_SHA1 = 254
S2K_USAGE_CHECKSUM = 255

S2K_SIMPLE = 0
S2K_SALTED = 1
S2K_ITERATED = 3
S2K_GNU_EXTENSION = 101

HASH_ALGORITHMS = {1: "md5", 2: "sha1", 8: "sha256", 9: "sha384", 10: "sha512", 11: "sha224"}
CIPHER_KEY_SIZES = {7: 16, 8: 24, 9: 32}
AES_BLOCK_SIZE = 16


def decode_count(coded: int) -> int:
    return (16 + (coded & 15)) << ((coded >> 4) + 6)


@dataclass
class S2K:
    kind: int
    hash_algorithm: int
    salt: bytes = b""
    coded_count: int = 0

    @classmethod
    def parse(cls, reader: PacketReader) -> "S2K":
        kind = reader.byte()
        if kind == S2K_GNU_EXTENSION:
            raise KeyFormatError("secret key material is not available (gnu-dummy key)")
        if kind not in (S2K_SIMPLE, S2K_SALTED, S2K_ITERATED):
            raise KeyFormatError(f"unsupported string-to-key specifier {kind}")
        hash_algorithm = reader.byte()
        if hash_algorithm not in HASH_ALGORITHMS:
            raise KeyFormatError(f"unsupported string-to-key hash algorithm {hash_algorithm}")
        salt = reader.read(8) if kind != S2K_SIMPLE else b""
        coded_count = reader.byte() if kind == S2K_ITERATED else 0
        return cls(kind=kind, hash_algorithm=hash_algorithm, salt=salt, coded_count=coded_count)

    def encode(self) -> bytes:
        encoded = bytes([self.kind, self.hash_algorithm]) + self.salt
        if self.kind == S2K_ITERATED:
            encoded += bytes([self.coded_count])
        return encoded

    def derive_key(self, passphrase: bytes, size: int) -> bytes:
        name = HASH_ALGORITHMS[self.hash_algorithm]
        key = b""
        preload = 0
        while len(key) < size:
            digest = hashlib.new(name)
            digest.update(b"\x00" * preload)
            data = self.salt + passphrase
            if self.kind == S2K_ITERATED and data:
                self._hash_iterated(digest, data)
            else:
                digest.update(data)
            key += digest.digest()
            preload += 1
        return key[:size]

    def _hash_iterated(self, digest, data: bytes) -> None:
        remaining = max(decode_count(self.coded_count), len(data))
        chunk = data * max(1, 65536 // len(data))
        while remaining >= len(chunk):
            digest.update(chunk)
            remaining -= len(chunk)
        digest.update(chunk[:remaining])


@dataclass
class SecretKey:
    created: int
    algorithm: int
    public_params: Tuple[int, ...]
    public_body: bytes
    s2k_usage: int
    secret_data: bytes
    cipher: int = 0
    s2k: Optional[S2K] = None
    iv: bytes = b""
    private_key: Any = None

    @classmethod
    def parse(cls, body: bytes) -> "SecretKey":
        reader = PacketReader(body)
        version = reader.byte()
        if version != 4:
            raise KeyFormatError(f"unsupported key packet version {version}")
        created = reader.uint(4)
        algorithm = reader.byte()
        if algorithm in (PUBKEY_RSA, PUBKEY_RSA_SIGN_ONLY):
            public_params: Tuple[int, ...] = (reader.mpi(), reader.mpi())
        elif algorithm == PUBKEY_EDDSA:
            oid = reader.read(reader.byte())
            if oid != ED25519_OID:
                raise KeyFormatError("unsupported EdDSA curve, only Ed25519 keys can sign")
            public_params = (reader.mpi(),)
            _eddsa_public_bytes(public_params[0])
        else:
            raise KeyFormatError(f"unsupported public key algorithm {algorithm}")
        public_body = body[: reader.position]

        s2k_usage = reader.byte()
        cipher = 0
        s2k = None
        iv = b""
        if s2k_usage in (S2K_USAGE_SHA1, S2K_USAGE_CHECKSUM):
            cipher = reader.byte()
            if cipher not in CIPHER_KEY_SIZES:
                raise KeyFormatError(f"unsupported symmetric cipher {cipher} protecting the private key")
            s2k = S2K.parse(reader)
            iv = reader.read(AES_BLOCK_SIZE)
        elif s2k_usage != S2K_USAGE_NONE:
            raise KeyFormatError("legacy secret key protection is not supported")

        key = cls(
            created=created,
            algorithm=algorithm,
            public_params=public_params,
            public_body=public_body,
            s2k_usage=s2k_usage,
            secret_data=reader.rest(),
            cipher=cipher,
            s2k=s2k,
            iv=iv,
        )
        if not key.encrypted:
            material, check = key.secret_data[:-2], key.secret_data[-2:]
            if len(key.secret_data) < 2 or sum(material) & 0xFFFF != int.from_bytes(check, "big"):
                raise KeyFormatError("secret key checksum mismatch")
            key._load(material)
        return key

    @property
    def encrypted(self) -> bool:
        return self.s2k_usage != S2K_USAGE_NONE

    @property
    def fingerprint(self) -> bytes:
        return hashlib.sha1(b"\x99" + len(self.public_body).to_bytes(2, "big") + self.public_body).digest()

    @property
    def key_id(self) -> bytes:
        return self.fingerprint[-8:]

    def unlock(self, passphrase: str) -> None:
        if self.private_key is not None:
            return
        key = self.s2k.derive_key(passphrase.encode("utf-8"), CIPHER_KEY_SIZES[self.cipher])
        decryptor = Cipher(algorithms.AES(key), CFB(self.iv)).decryptor()
        plain = decryptor.update(self.secret_data) + decryptor.finalize()
        if self.s2k_usage == S2K_USAGE_SHA1:
            material, check = plain[:-20], plain[-20:]
            valid = len(plain) > 20 and hashlib.sha1(material).digest() == check
        else:
            material, check = plain[:-2], plain[-2:]
            valid = len(plain) > 2 and sum(material) & 0xFFFF == int.from_bytes(check, "big")
        if not valid:
            raise PassphraseError("cannot decrypt private key, check passphrase")
        try:
            self._load(material)
        except KeyFormatError as exc:
            raise PassphraseError("cannot decrypt private key, check passphrase") from exc

    def sign_digest(self, digest: bytes) -> bytes:
        if self.private_key is None:
            raise SigningError("private key is still encrypted")
        if self.algorithm == PUBKEY_EDDSA:
            signature = self.private_key.sign(digest)
            return encode_mpi(int.from_bytes(signature[:32], "big")) + encode_mpi(int.from_bytes(signature[32:], "big"))
        signature = self.private_key.sign(digest, padding.PKCS1v15(), utils.Prehashed(hashes.SHA256()))
        return encode_mpi(int.from_bytes(signature, "big"))

    def _load(self, material: bytes) -> None:
        reader = PacketReader(material)
        try:
            if self.algorithm == PUBKEY_EDDSA:
                seed = reader.mpi()
                if seed.bit_length() > 256:
                    raise KeyFormatError("invalid Ed25519 secret key length")
                private_key = Ed25519PrivateKey.from_private_bytes(seed.to_bytes(32, "big"))
                public = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
                if public != _eddsa_public_bytes(self.public_params[0]):
                    raise KeyFormatError("secret key does not match its public key")
            else:
                n, e = self.public_params
                d, p, q = reader.mpi(), reader.mpi(), reader.mpi()
                numbers = rsa.RSAPrivateNumbers(
                    p=p,
                    q=q,
                    d=d,
                    dmp1=rsa.rsa_crt_dmp1(d, p),
                    dmq1=rsa.rsa_crt_dmq1(d, q),
                    iqmp=rsa.rsa_crt_iqmp(p, q),
                    public_numbers=rsa.RSAPublicNumbers(e, n),
                )
                private_key = numbers.private_key()
        except (ValueError, ZeroDivisionError, UnsupportedAlgorithm) as exc:
            raise KeyFormatError("invalid secret key material") from exc
        self.private_key = private_key


@dataclass
class SigningIdentity:
    key: SecretKey
    user_id: str


def load_signing_key(armored: str) -> SigningIdentity:
    block = armor.decode(armored)
    key_body: Optional[bytes] = None
    user_id: Optional[str] = None
    for packet in iter_packets(block.body):
        if packet.tag in SECRET_KEY_TAGS and key_body is None:
            key_body = packet.body
        elif packet.tag == TAG_USER_ID and user_id is None:
            user_id = packet.body.decode("utf-8", errors="replace")
    if key_body is None:
        raise KeyFormatError("no packet with private key found")
    if user_id is None:
        raise KeyFormatError("no packet with user id found")
    return SigningIdentity(key=SecretKey.parse(key_body), user_id=user_id)


def _eddsa_public_bytes(point: int) -> bytes:
    if point >> 256 != 0x40:
        raise KeyFormatError("Ed25519 public key must use the native point format")
    return (point & ((1 << 256) - 1)).to_bytes(32, "big")
