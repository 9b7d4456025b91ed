from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class ArchiveMember:
    name: str
    content: bytes
    mode: int = 0o644
    mtime: int = 0


@dataclass
class ChecksumRecord:
    path: str
    md5: str
    size: int


@dataclass
class DataArchive:
    content: bytes
    checksums: List[ChecksumRecord] = field(default_factory=list)
    size: int = 0

    @property
    def installed_size(self) -> int:
        return self.size // 1024


@dataclass
class MemberDigest:
    name: str
    md5: str
    sha1: str
    length: int
