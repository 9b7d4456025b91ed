from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from typing import Callable, List, Optional

from packsmith.errors import KeyFormatError, SigningError
from packsmith.pgp.clearsign import clearsign
from packsmith.pgp.keys import load_signing_key
from packsmith.types import MemberDigest

logger = logging.getLogger("packsmith.deb.signer")


def format_date(moment: datetime) -> str:
    return f"{moment:%a %b} {moment.day} {moment:%H:%M:%S %Y}"


class Signer:
    def __init__(
        self,
        key: str = "",
        passphrase: str = "",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._key = key
        self._passphrase = passphrase
        self._clock = clock or datetime.now
        self._members: List[MemberDigest] = []

    @property
    def configured(self) -> bool:
        return bool(self._key)

    @property
    def members(self) -> List[MemberDigest]:
        return list(self._members)

    def register(self, name: str, content: bytes) -> None:
        self._members.append(
            MemberDigest(
                name=name,
                md5=hashlib.md5(content).hexdigest(),
                sha1=hashlib.sha1(content).hexdigest(),
                length=len(content),
            )
        )

    def manifest_text(self, user_id: str, moment: datetime) -> str:
        lines = [
            "Version: 4",
            f"Signer: {user_id}",
            f"Date: {format_date(moment)}",
            "Role: origin",
            "Files:",
        ]
        text = "\n".join(lines) + "\n"
        for member in self._members:
            text += f"\t{member.md5} {member.sha1} {member.length} {member.name}\n"
        return text

    def sign(self) -> bytes:
        if not self.configured:
            return b""
        try:
            identity = load_signing_key(self._key)
        except KeyFormatError as exc:
            raise KeyFormatError("unable to extract information from private key data") from exc
        if identity.key.encrypted:
            identity.key.unlock(self._passphrase)

        moment = self._clock()
        text = self.manifest_text(identity.user_id, moment)
        try:
            block = clearsign(text, identity.key, created=int(moment.timestamp()))
        except (ValueError, TypeError) as exc:
            raise SigningError("cannot create signature") from exc
        logger.info(
            "package_signed",
            extra={
                "extra": {
                    "signer": identity.user_id,
                    "key_id": identity.key.key_id.hex().upper(),
                    "members": [member.name for member in self._members],
                }
            },
        )
        return (block + "\n").encode("utf-8")
