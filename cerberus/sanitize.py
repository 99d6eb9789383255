"""Allow-list sanitizers applied to every untrusted value before it reaches a shell.

Nothing in here raises: characters outside the allowed set are dropped or
replaced, so callers always get a usable (possibly empty) string back.
"""

import posixpath
import re
from typing import Any

DIGEST_PREFIX = "sha256:"
MAX_IDENTIFIER_LENGTH = 128
MAX_CONTAINER_NAME_LENGTH = 64

_NON_HEX = re.compile(r"[^0-9a-fA-F]")
_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_./:-]")
_NON_NAME = re.compile(r"[^A-Za-z0-9_.-]")
_NON_ENV_KEY = re.compile(r"[^A-Za-z0-9_]")
_NON_PORT = re.compile(r"[^0-9.:\-]")


def _text(raw: Any) -> str:
    if raw is None:
        return ""
    return raw if isinstance(raw, str) else str(raw)


def sanitize_identifier(raw: Any) -> str:
    """Container or image reference: a ``sha256:`` digest or a ``repo[:tag]`` name.

    Leading dashes are dropped so the reference is never read as a docker flag.
    """
    value = _text(raw).strip()
    if value.startswith(DIGEST_PREFIX):
        return DIGEST_PREFIX + _NON_HEX.sub("", value[len(DIGEST_PREFIX):])
    return _NON_IDENTIFIER.sub("", value).lstrip("-")[:MAX_IDENTIFIER_LENGTH]


def sanitize_container_name(raw: Any) -> str:
    value = _NON_NAME.sub("", _text(raw))
    if value and not value[0].isalnum():
        value = "c" + value
    return value[:MAX_CONTAINER_NAME_LENGTH]


def sanitize_network(raw: Any) -> str:
    return _NON_NAME.sub("", _text(raw))[:MAX_CONTAINER_NAME_LENGTH]


def sanitize_port(raw: Any) -> str:
    return _NON_PORT.sub("", _text(raw))


def sanitize_env_key(raw: Any) -> str:
    return _NON_ENV_KEY.sub("_", _text(raw))


def canonical_path(raw: Any) -> str:
    """Absolute form of ``raw`` with ``.`` and ``..`` resolved; an empty path means the root.

    Relative input is anchored at ``/``, so the result never starts with ``-``.
    """
    value = _text(raw).replace("\x00", "")
    if not value:
        return "/"
    cleaned = posixpath.normpath("/" + value)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def escape_single_quotes(raw: Any) -> str:
    return _text(raw).replace("'", "'\\''")


def quote_arg(raw: Any) -> str:
    """Literal single-quoted shell word."""
    return "'" + escape_single_quotes(raw) + "'"


def sanitize_path(raw: Any) -> str:
    """Canonical path, single-quoted for shell embedding."""
    return quote_arg(canonical_path(raw))


_SANITIZERS = {
    "identifier": sanitize_identifier,
    "container_name": sanitize_container_name,
    "network": sanitize_network,
    "port": sanitize_port,
    "env_key": sanitize_env_key,
    "path": sanitize_path,
    "arg": quote_arg,
}


def sanitize(kind: str, raw: Any) -> str:
    # Unknown kinds fall back to full quoting.
    return _SANITIZERS.get(kind, quote_arg)(raw)
