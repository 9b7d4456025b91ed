from __future__ import annotations

import io
import tarfile
import time
import zlib
from typing import Iterable, List, Optional, Sequence

from packsmith.config.models import Manifest
from packsmith.errors import ArchiveError
from packsmith.types import ArchiveMember, ChecksumRecord

RELATION_FIELDS = (
    ("Replaces", "replaces"),
    ("Provides", "provides"),
    ("Depends", "depends"),
    ("Recommends", "recommends"),
    ("Suggests", "suggests"),
    ("Conflicts", "conflicts"),
)


def join_relations(values: Sequence[str]) -> str:
    return ", ".join(values).strip(" ")


def format_description(description: str) -> str:
    lines = description.strip("\n").splitlines() or [""]
    rendered = [lines[0].rstrip()]
    for line in lines[1:]:
        rendered.append(" " + line.rstrip() if line.strip() else " .")
    return "\n".join(rendered)


def render_control(manifest: Manifest, installed_size: int) -> str:
    lines = [
        f"Package: {manifest.name}",
        f"Version: {manifest.version}",
        f"Section: {manifest.section}",
        f"Priority: {manifest.priority}",
        f"Architecture: {manifest.arch}",
        f"Maintainer: {manifest.maintainer}",
        f"Vendor: {manifest.vendor}",
        f"Installed-Size: {installed_size}",
    ]
    for label, attr in RELATION_FIELDS:
        values = getattr(manifest, attr)
        if values:
            lines.append(f"{label}: {join_relations(values)}")
    lines.append(f"Homepage: {manifest.homepage}")
    lines.append(f"Description: {format_description(manifest.description)}")
    return "\n".join(lines) + "\n"


def render_md5sums(checksums: Iterable[ChecksumRecord]) -> str:
    return "".join(f"{record.md5}  {record.path}\n" for record in checksums)


def render_conffiles(manifest: Manifest) -> str:
    return "".join(f"{dst}\n" for dst in manifest.config_files.values())


def control_members(
    manifest: Manifest, checksums: Sequence[ChecksumRecord], installed_size: int, mtime: int
) -> List[ArchiveMember]:
    try:
        control = render_control(manifest, installed_size).encode("utf-8")
    except (TypeError, ValueError, UnicodeError) as exc:
        raise ArchiveError("cannot render control file") from exc
    return [
        ArchiveMember(name="control", content=control, mtime=mtime),
        ArchiveMember(name="md5sums", content=render_md5sums(checksums).encode("utf-8"), mtime=mtime),
        ArchiveMember(name="conffiles", content=render_conffiles(manifest).encode("utf-8"), mtime=mtime),
    ]


def build_control_archive(
    manifest: Manifest,
    checksums: Sequence[ChecksumRecord],
    installed_size: int,
    mtime: Optional[int] = None,
) -> bytes:
    stamp = int(time.time()) if mtime is None else mtime
    buffer = io.BytesIO()
    try:
        with tarfile.open(fileobj=buffer, mode="w:gz", format=tarfile.GNU_FORMAT) as tar:
            for member in control_members(manifest, checksums, installed_size, stamp):
                info = tarfile.TarInfo(name=member.name)
                info.type = tarfile.REGTYPE
                info.size = len(member.content)
                info.mode = member.mode
                info.mtime = member.mtime
                info.uname = info.gname = "root"
                tar.addfile(info, io.BytesIO(member.content))
    except (tarfile.TarError, zlib.error, OSError) as exc:
        raise ArchiveError("cannot write control.tar.gz") from exc
    return buffer.getvalue()
