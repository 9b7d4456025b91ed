from __future__ import annotations

from typing import Any, Dict, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_BINDIR = "/usr/local/bin"
DEFAULT_PLATFORM = "linux"


class SignatureConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str = ""
    key_file: str = ""
    passphrase: str = ""


class DebConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    signature: SignatureConfig = Field(default_factory=SignatureConfig)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_file: Optional[str] = None
    console: bool = True


class Manifest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = ""
    arch: str = ""
    platform: str = DEFAULT_PLATFORM
    version: str = ""
    section: str = ""
    priority: str = ""
    replaces: Tuple[str, ...] = ()
    provides: Tuple[str, ...] = ()
    depends: Tuple[str, ...] = ()
    recommends: Tuple[str, ...] = ()
    suggests: Tuple[str, ...] = ()
    conflicts: Tuple[str, ...] = ()
    maintainer: str = ""
    description: str = ""
    vendor: str = ""
    homepage: str = ""
    license: str = ""
    bindir: str = DEFAULT_BINDIR
    files: Dict[str, str] = Field(default_factory=dict)
    config_files: Dict[str, str] = Field(default_factory=dict)
    deb: DebConfig = Field(default_factory=DebConfig)

    @field_validator("version", mode="before")
    @classmethod
    def _strip_version_prefix(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and value.startswith("v"):
            return value[1:]
        return value

    @field_validator("platform")
    @classmethod
    def _default_platform(cls, value: str) -> str:
        return value or DEFAULT_PLATFORM

    @field_validator("bindir")
    @classmethod
    def _default_bindir(cls, value: str) -> str:
        return value or DEFAULT_BINDIR

    @field_validator("files", "config_files")
    @classmethod
    def _absolute_destinations(cls, value: Dict[str, str]) -> Dict[str, str]:
        for src, dst in value.items():
            if not dst.startswith("/") or dst.strip("/") == "":
                raise ValueError(f"destination of {src!r} must be an absolute file path, got {dst!r}")
        return value

    @model_validator(mode="after")
    def _unique_destinations(self) -> "Manifest":
        seen: Dict[str, str] = {}
        for src, dst in self.iter_files():
            if dst in seen:
                raise ValueError(f"destination {dst!r} is declared for both {seen[dst]!r} and {src!r}")
            seen[dst] = src
        return self

    def iter_files(self) -> Iterator[Tuple[str, str]]:
        for files in (self.files, self.config_files):
            for src, dst in files.items():
                yield src, dst
