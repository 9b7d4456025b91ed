import hashlib
import os

import pytest

from packsmith.config.models import Manifest
from packsmith.deb.data import build_data_archive, parent_directories
from packsmith.errors import ArchiveError, PackageIOError


def test_parent_directories_nearest_root_first():
    assert parent_directories("/usr/local/bin/foo") == ["usr", "usr/local", "usr/local/bin"]
    assert parent_directories("/foo") == []


def test_directories_created_once_before_files(make_file, tar_entries):
    manifest = Manifest(
        files={
            make_file("foo", b"foo"): "/usr/local/bin/foo",
            make_file("bar", b"bar"): "/usr/local/bin/bar",
            make_file("lib", b"lib"): "/usr/lib/foo/lib.so",
        }
    )
    archive = build_data_archive(manifest, mtime=1000)
    entries = [(member.name, member.isdir()) for member, _ in tar_entries(archive.content)]
    assert entries == [
        ("usr", True),
        ("usr/local", True),
        ("usr/local/bin", True),
        ("usr/local/bin/foo", False),
        ("usr/local/bin/bar", False),
        ("usr/lib", True),
        ("usr/lib/foo", True),
        ("usr/lib/foo/lib.so", False),
    ]


def test_entry_attributes(make_file, tar_entries):
    manifest = Manifest(files={make_file("tool", b"#!/bin/sh\n", mode=0o755): "/usr/bin/tool"})
    archive = build_data_archive(manifest, mtime=1234)
    members = {member.name: (member, content) for member, content in tar_entries(archive.content)}
    directory, _ = members["usr"]
    assert directory.mode == 0o755
    tool, content = members["usr/bin/tool"]
    assert tool.isfile()
    assert tool.mode == 0o755
    assert tool.mtime == 1234
    assert tool.uid == 0 and tool.uname == "root"
    assert content == b"#!/bin/sh\n"


def test_checksums_and_installed_size(make_file):
    big = os.urandom(3000)
    small = b"hello world\n"
    manifest = Manifest(
        files={make_file("big", big): "/opt/app/big.bin"},
        config_files={make_file("app.conf", small): "/etc/app.conf"},
    )
    archive = build_data_archive(manifest)
    assert [(record.path, record.md5, record.size) for record in archive.checksums] == [
        ("opt/app/big.bin", hashlib.md5(big).hexdigest(), 3000),
        ("etc/app.conf", hashlib.md5(small).hexdigest(), len(small)),
    ]
    assert archive.size == 3000 + len(small)
    assert archive.installed_size == (3000 + len(small)) // 1024


def test_installed_size_truncates(make_file):
    manifest = Manifest(files={make_file("a", b"x" * 2047): "/a"})
    assert build_data_archive(manifest).installed_size == 1


def test_empty_file_set():
    archive = build_data_archive(Manifest())
    assert archive.checksums == []
    assert archive.installed_size == 0
    assert archive.content


def test_config_files_follow_content_files(make_file, tar_entries):
    manifest = Manifest(
        config_files={make_file("c.conf", b"c"): "/etc/c.conf"},
        files={make_file("z", b"z"): "/usr/bin/z", make_file("a", b"a"): "/usr/bin/a"},
    )
    archive = build_data_archive(manifest)
    assert [record.path for record in archive.checksums] == ["usr/bin/z", "usr/bin/a", "etc/c.conf"]
    files = [member.name for member, _ in tar_entries(archive.content) if member.isfile()]
    assert files == ["usr/bin/z", "usr/bin/a", "etc/c.conf"]


def test_repeated_builds_have_stable_digests(make_file):
    manifest = Manifest(files={make_file("foo", b"stable"): "/usr/bin/foo"})
    first = build_data_archive(manifest)
    second = build_data_archive(manifest)
    assert first.checksums == second.checksums
    assert first.installed_size == second.installed_size


def test_same_mtime_gives_identical_payload(make_file, tar_entries):
    manifest = Manifest(files={make_file("foo", b"stable"): "/usr/bin/foo"})
    first = tar_entries(build_data_archive(manifest, mtime=42).content)
    second = tar_entries(build_data_archive(manifest, mtime=42).content)
    assert [(m.name, m.mtime, c) for m, c in first] == [(m.name, m.mtime, c) for m, c in second]


def test_missing_source_is_io_error(tmp_path):
    manifest = Manifest(files={str(tmp_path / "missing"): "/usr/bin/missing"})
    with pytest.raises(PackageIOError, match="could not add"):
        build_data_archive(manifest)


def test_directory_source_is_rejected(tmp_path):
    source = tmp_path / "somedir"
    source.mkdir()
    manifest = Manifest(files={str(source): "/usr/share/somedir"})
    with pytest.raises(ArchiveError, match="source is a directory"):
        build_data_archive(manifest)
