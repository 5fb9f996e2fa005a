# src/httpsim/matching.py
"""First-match-wins evaluation of resources against a request.

A resource matches when every configured constraint holds:
- method is listed (or no methods are listed)
- path matches the path glob
- every request header whose name matches a configured name glob has
  exactly as many values as configured, each matching positionally
- the same rule for query parameters

Headers and parameters that no configured name glob matches are ignored.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from starlette.datastructures import QueryParams

from httpsim.config import Config, GlobMap, Resource

_TOKEN_CHARS = frozenset("!#$%&'*+-.^_`|~0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz")


def canonical_header_key(name: str) -> str:
    """Return the canonical MIME form of a header name.

    The first letter and any letter following a hyphen are upper case, the
    rest lower case: ``content-type`` -> ``Content-Type``. Names containing
    characters outside the HTTP token set are returned unchanged.
    """
    if not name or any(char not in _TOKEN_CHARS for char in name):
        return name
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


def _group(pairs: Sequence[tuple[str, str]]) -> Mapping[str, tuple[str, ...]]:
    grouped: dict[str, list[str]] = {}
    for name, value in pairs:
        grouped.setdefault(name, []).append(value)
    return MappingProxyType({name: tuple(values) for name, values in grouped.items()})


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """Read-only view of a request as seen by the matcher.

    Attributes:
        method: Request method token (e.g. "GET").
        path: Decoded URL path.
        headers: Canonical header name to values in arrival order.
        query: Query parameter name to values in arrival order.
    """

    method: str
    path: str
    headers: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    query: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        *,
        headers: Sequence[tuple[str, str]] = (),
        query: Sequence[tuple[str, str]] = (),
    ) -> RequestDescriptor:
        """Build a descriptor from (name, value) pairs, canonicalizing header names."""
        return cls(
            method=method,
            path=path,
            headers=_group([(canonical_header_key(name), value) for name, value in headers]),
            query=_group(query),
        )

    @classmethod
    def from_scope(cls, scope: Mapping[str, Any]) -> RequestDescriptor:
        """Build a descriptor from an ASGI HTTP connection scope."""
        headers = [(name.decode("latin-1"), value.decode("latin-1")) for name, value in scope.get("headers", ())]
        query = QueryParams(scope.get("query_string", b"")).multi_items()
        return cls.build(scope["method"], scope["path"], headers=headers, query=query)


def _values_match(constraints: GlobMap, actual: Mapping[str, tuple[str, ...]]) -> bool:
    for name_pattern, expected in constraints.items():
        for name, values in actual.items():
            if not name_pattern.match(name):
                continue
            if len(values) != len(expected):
                return False
            for pattern, value in zip(expected, values, strict=True):
                if not pattern.match(value):
                    return False
    return True


def match_resource(request: RequestDescriptor, resource: Resource) -> bool:
    """Return True if the request satisfies every constraint of the resource."""
    if resource.methods and request.method not in resource.methods:
        return False
    if not resource.path.match(request.path):
        return False
    if not _values_match(resource.headers, request.headers):
        return False
    return _values_match(resource.query, request.query)


def match(request: RequestDescriptor, config: Config) -> int | None:
    """Return the index of the first matching resource, or None."""
    for index, resource in enumerate(config.resources):
        if match_resource(request, resource):
            return index
    return None
