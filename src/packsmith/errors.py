from __future__ import annotations

from typing import List


class PackagerError(RuntimeError):
    pass


class ConfigError(PackagerError):
    pass


class FormatError(PackagerError):
    pass


class PackageIOError(PackagerError):
    pass


class ArchiveError(PackagerError):
    pass


class SigningError(PackagerError):
    pass


class KeyFormatError(SigningError):
    pass


class PassphraseError(SigningError):
    pass


class BuildError(PackagerError):
    pass


def describe(exc: BaseException) -> str:
    parts: List[str] = []
    current = exc
    while current is not None:
        message = str(current) or type(current).__name__
        if not parts or parts[-1] != message:
            parts.append(message)
        current = current.__cause__
    return ": ".join(parts)
