from __future__ import annotations

import os
import re
from typing import Mapping, Optional

from packsmith.errors import ConfigError

_EXPRESSION = re.compile(
    r"\$(?:(?P<escaped>\$)|(?P<named>[A-Za-z_][A-Za-z0-9_]*)|\{(?P<braced>[^{}]*)\}|(?P<unclosed>\{))"
)
_BRACED = re.compile(r"(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?:(?P<op>:?-)(?P<default>.*))?", re.S)


def substitute(text: str, env: Optional[Mapping[str, str]] = None) -> str:
    variables = os.environ if env is None else env

    def _replace(match: re.Match) -> str:
        if match.group("escaped") is not None:
            return "$"
        if match.group("named") is not None:
            return variables.get(match.group("named"), "")
        if match.group("unclosed") is not None:
            line = text.count("\n", 0, match.start()) + 1
            raise ConfigError(f"unclosed variable expression on line {line}")
        expression = match.group("braced")
        parsed = _BRACED.fullmatch(expression)
        if parsed is None:
            raise ConfigError(f"bad substitution: ${{{expression}}}")
        name = parsed.group("name")
        op = parsed.group("op")
        value = variables.get(name)
        if op == ":-" and not value:
            return parsed.group("default")
        if op == "-" and value is None:
            return parsed.group("default")
        return value or ""

    return _EXPRESSION.sub(_replace, text)
