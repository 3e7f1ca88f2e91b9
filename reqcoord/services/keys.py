"""
Request identity and endpoint group derivation.

A key is "<url>:<canonical json params>", prefixed with "<METHOD> " for
anything but GET so a write never shares an in-flight read. The endpoint
group is the API root plus the first path segment(s) below it, e.g. "/api/wallet" for
"https://host/api/wallet/balance?page=2".
"""

import json
from typing import Any
from urllib.parse import urlsplit

KEY_SEPARATOR = ":{"


def canonical_params(params: dict[str, Any] | None) -> str:
    """Serialize params with sorted keys so insertion order never changes a key."""
    return json.dumps(
        params or {},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def generate_key(
    url: str,
    params: dict[str, Any] | None = None,
    method: str = "GET",
) -> str:
    """Generate a request key from method, URL and params."""
    method = method.upper()
    prefix = "" if method == "GET" else f"{method} "
    return f"{prefix}{url}:{canonical_params(params)}"


def key_url(key: str) -> str:
    """Return the URL portion of a key (the whole string if it has no params part)."""
    index = key.find(KEY_SEPARATOR)
    url = key if index == -1 else key[:index]
    method, sep, rest = url.partition(" ")
    if sep and method.isalpha() and method.isupper():
        return rest
    return url


def endpoint_group(key: str, api_root: str = "/api", depth: int = 1) -> str:
    """
    Derive the endpoint group for a key.

    Args:
        key: Request key (or a bare URL)
        api_root: Path prefix under which groups are taken
        depth: Number of path segments below the root included in the group

    Returns:
        Group path such as "/api/wallet"
    """
    path = urlsplit(key_url(key)).path
    segments = [s for s in path.split("/") if s]
    root_segments = [s for s in api_root.split("/") if s]

    if root_segments and segments[: len(root_segments)] == root_segments:
        tail = segments[len(root_segments) : len(root_segments) + depth]
        return "/" + "/".join(root_segments + tail)

    if not segments:
        return "/"
    return "/" + "/".join(segments[:depth])
