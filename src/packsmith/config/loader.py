from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Mapping, Optional

import yaml
from pydantic import ValidationError

from packsmith.config.envsubst import substitute
from packsmith.config.models import Manifest
from packsmith.errors import ConfigError

_NUMERIC_TAGS = ("tag:yaml.org,2002:int", "tag:yaml.org,2002:float")


class ManifestYamlLoader(yaml.SafeLoader):
    pass


# numbers stay as written so "version: 1.10" keeps its trailing zero
ManifestYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _NUMERIC_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass
class LoadedConfig:
    manifest: Manifest
    checksum: str
    path: str


class ConfigLoader:
    def __init__(self, path: str, env: Optional[Mapping[str, str]] = None) -> None:
        self._path = path
        self._env = env

    @staticmethod
    def _compute_checksum(payload: str) -> str:
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def load(self) -> LoadedConfig:
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                payload = handle.read()
        except OSError as exc:
            raise ConfigError(f"error reading config file '{self._path}'") from exc
        try:
            rendered = substitute(payload, self._env)
        except ConfigError as exc:
            raise ConfigError("error substituting environment variables") from exc
        manifest = self.parse(rendered)
        return LoadedConfig(manifest=manifest, checksum=self._compute_checksum(rendered), path=self._path)

    @staticmethod
    def parse(text: str) -> Manifest:
        try:
            data = yaml.load(text, Loader=ManifestYamlLoader)
        except yaml.YAMLError as exc:
            raise ConfigError("error parsing yaml configuration") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("error parsing yaml configuration: expected a mapping at the top level")
        try:
            manifest = Manifest.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"invalid package manifest: {exc}") from exc
        return _resolve_signing_key(manifest)


def _resolve_signing_key(manifest: Manifest) -> Manifest:
    signature = manifest.deb.signature
    if signature.key or not signature.key_file:
        return manifest
    try:
        with open(signature.key_file, "r", encoding="utf-8") as handle:
            key = handle.read()
    except OSError as exc:
        raise ConfigError(f"cannot read signing key file '{signature.key_file}'") from exc
    deb = manifest.deb.model_copy(update={"signature": signature.model_copy(update={"key": key})})
    return manifest.model_copy(update={"deb": deb})
