from __future__ import annotations

import os

from packsmith.errors import ConfigError

EXAMPLE_CONFIG = """\
# packsmith example manifest
#
# Values may reference environment variables: $VERSION, ${VERSION}
# or ${VERSION:-0.0.1}.
name: "foo"
arch: "amd64"
platform: "linux"
version: "v${VERSION:-1.0.0}"
section: "default"
priority: "extra"
replaces:
  - foobar
provides:
  - bar
depends:
  - foo
  - bar
recommends:
  - whatever
suggests:
  - something-else
conflicts:
  - not-foo
  - not-bar
maintainer: "John Doe <john@example.com>"
description: |
  FOO is the great foo and bar software.
    And this can be in multiple lines!
vendor: "FooBarCorp"
homepage: "http://example.com"
license: "MIT"
bindir: "/usr/local/bin"
files:
  ./foo: "/usr/local/bin/foo"
  ./bar: "/usr/local/bin/bar"
config_files:
  ./foobar.conf: "/etc/foobar.conf"
deb:
  signature:
    key_file: ""
    passphrase: "${DEB_SIGNING_PASSPHRASE:-}"
"""


def write_example(path: str, force: bool = False) -> None:
    if os.path.exists(path) and not force:
        raise ConfigError(f"config file '{path}' already exists, use --force to overwrite it")
    try:
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(EXAMPLE_CONFIG)
    except OSError as exc:
        raise ConfigError(f"cannot write config file '{path}'") from exc
