# src/httpsim/config.py
"""Configuration schema and loading for the HTTP simulator.

Uses Pydantic for validation with frozen (immutable) models. A validated
``Config`` is the snapshot the middleware publishes; nothing downstream
re-validates it.

Example file:

    resources:
      - path: /specific
        methods: [DELETE]
        effect:
          replace:
            status-code: 404
            body: "Specific resource not found"
            headers:
              Content-Type: text/plain
      - path: /*
        headers:
          "Content-Type": ["application/javascript"]
        effect:
          delay:
            min: 200ms
            max: 10s
"""

from __future__ import annotations

import io
from collections.abc import Hashable
from http import HTTPStatus
from pathlib import Path
from typing import Annotated, Any, TextIO

import pydantic
import yaml
from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, PlainSerializer, model_validator

from httpsim.durations import coerce_duration, format_duration
from httpsim.globs import MATCH_ALL, GlobPattern


class ConfigError(ValueError):
    """Raised when a configuration cannot be loaded."""


# === Field types ===


def _check_http_method(value: str) -> str:
    if not value or not all("A" <= char <= "Z" for char in value):
        raise ValueError(f"invalid HTTP method: {value!r}")
    return value


def _check_status_code(value: int) -> int:
    try:
        HTTPStatus(value)
    except ValueError:
        raise ValueError(f"invalid HTTP response status code: {value}") from None
    return value


def _check_header_name(value: str) -> str:
    if not value or not all(char == "-" or (char.isascii() and char.isalnum()) for char in value):
        raise ValueError(f"invalid header name: {value!r}")
    return value


def _check_header_value(value: str) -> str:
    if any(char in "\r\n\0" for char in value):
        raise ValueError(f"invalid header value: {value!r}: contains CR, LF or NUL")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        raise ValueError(f"invalid header value: {value!r}: not latin-1 text") from None
    return value


HTTPMethod = Annotated[str, AfterValidator(_check_http_method)]
StatusCode = Annotated[int, AfterValidator(_check_status_code)]
HeaderName = Annotated[str, AfterValidator(_check_header_name)]
HeaderValue = Annotated[str, AfterValidator(_check_header_value)]
Duration = Annotated[
    int,
    BeforeValidator(coerce_duration),
    Field(ge=0),
    PlainSerializer(format_duration, when_used="json"),
]
GlobMap = dict[GlobPattern, tuple[GlobPattern, ...]]


# === Effects ===


class DurRange(BaseModel):
    """Delay range in nanoseconds. ``max`` defaults to ``min`` when omitted."""

    model_config = {"frozen": True, "extra": "forbid"}

    min: Duration = Field(description="Minimum delay")
    max: Duration = Field(description="Maximum delay (exclusive unless equal to min)")

    @model_validator(mode="before")
    @classmethod
    def default_max_to_min(cls, data: Any) -> Any:
        """Treat an omitted max as a fixed delay of min."""
        if isinstance(data, dict) and "min" in data and "max" not in data:
            return {**data, "max": data["min"]}
        return data

    @model_validator(mode="after")
    def validate_range(self) -> DurRange:
        """Ensure min <= max."""
        if self.min > self.max:
            raise ValueError(f"min greater than max: {format_duration(self.min)} > {format_duration(self.max)}")
        return self


class Replace(BaseModel):
    """Literal response written instead of forwarding the request."""

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    status_code: StatusCode = Field(alias="status-code", description="HTTP status code to respond with")
    body: str | None = Field(default=None, description="Response body")
    headers: dict[HeaderName, HeaderValue] = Field(default_factory=dict, description="Response headers, overwriting existing")

    @model_validator(mode="after")
    def validate_body_allowed(self) -> Replace:
        """Reject a body on statuses that cannot carry one (1xx, 204, 304)."""
        if self.body and (self.status_code < 200 or self.status_code in (204, 304)):
            raise ValueError(f"status {self.status_code} does not allow a response body")
        return self


class Effect(BaseModel):
    """What happens to a matched request: a delay, a replacement, or both."""

    model_config = {"frozen": True, "extra": "forbid"}

    delay: DurRange | None = None
    replace: Replace | None = None

    @model_validator(mode="after")
    def validate_has_effect(self) -> Effect:
        """Reject effects that would do nothing."""
        if (self.delay is None or self.delay.min == 0) and self.replace is None:
            raise ValueError("no effect: specify a replacement or a delay with a non-zero minimum")
        return self


# === Resources ===


class Resource(BaseModel):
    """One matching rule. Omitted constraints match everything."""

    model_config = {"frozen": True, "extra": "forbid"}

    methods: tuple[HTTPMethod, ...] = Field(default=(), description="Allowed methods, empty matches any")
    path: GlobPattern = Field(default=MATCH_ALL, description="Path glob")
    headers: GlobMap = Field(default_factory=dict, description="Header name glob to ordered value globs")
    query: GlobMap = Field(default_factory=dict, description="Query parameter glob to ordered value globs")
    effect: Effect | None = None


class Config(BaseModel):
    """Ordered list of resources; the first matching resource wins."""

    model_config = {"frozen": True, "extra": "forbid"}

    resources: tuple[Resource, ...] = ()


# === Loading ===


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate mapping keys."""


def _construct_unique_mapping(loader: _UniqueKeyLoader, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
    loader.flatten_mapping(node)
    seen: set[Any] = set()
    for key_node, _ in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if not isinstance(key, Hashable):
            # construct_mapping reports unhashable keys itself
            continue
        if key in seen:
            raise yaml.constructor.ConstructorError(
                "while constructing a mapping",
                node.start_mark,
                f"duplicate key {key!r}",
                key_node.start_mark,
            )
        seen.add(key)
    return loader.construct_mapping(node, deep=deep)


_UniqueKeyLoader.add_constructor(yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_unique_mapping)


def load(source: str | bytes | TextIO) -> Config:
    """Load and validate a config from YAML text or a text stream.

    Raises:
        ConfigError: "decoding YAML: ..." for malformed documents,
            "validating: ..." for schema violations.
    """
    try:
        if isinstance(source, bytes):
            source = io.StringIO(source.decode("utf-8"))
        raw = yaml.load(source, Loader=_UniqueKeyLoader)  # noqa: S506 - SafeLoader subclass
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigError(f"decoding YAML: {e}") from e
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"decoding YAML: config must be a mapping, got {type(raw).__name__}")
    resources = raw.get("resources")
    if resources is None:
        raw.pop("resources", None)
    elif not isinstance(resources, list):
        raise ConfigError(f"decoding YAML: resources must be a list, got {type(resources).__name__}")
    try:
        return Config.model_validate(raw)
    except pydantic.ValidationError as e:
        raise ConfigError(f"validating: {e}") from e


def load_file(path: str | Path) -> Config:
    """Load and validate a config file.

    Raises:
        ConfigError: "opening file: ..." if the file cannot be read, otherwise
            as ``load``.
    """
    try:
        with Path(path).open(encoding="utf-8") as f:
            return load(f)
    except OSError as e:
        raise ConfigError(f"opening file: {e}") from e
