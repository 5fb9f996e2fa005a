# src/httpsim/__init__.py
"""httpsim: HTTP latency and fault injection middleware.

httpsim provides:
- Ordered resource rules matching method, path, headers and query by glob
- Per-request delays drawn from a reproducible ChaCha8 stream
- Literal response replacement (status, headers, body)
- Live config republishing without restarting the server
- A reverse proxy / echo server and CLI for running it standalone

Usage:
    # CLI - Start in front of a service
    httpsim serve --config=httpsim.yaml --upstream=http://127.0.0.1:8080

    # ASGI middleware
    from httpsim import HTTPSimMiddleware, load_file

    app = HTTPSimMiddleware(app, load_file("httpsim.yaml"))
"""

__version__ = "0.1.0"

from httpsim.config import Config, ConfigError, DurRange, Effect, Replace, Resource, load, load_file
from httpsim.durations import format_duration, parse_duration
from httpsim.effects import AsyncioSleeper, RecordingSleeper, Sleeper, apply_effect
from httpsim.globs import MATCH_ALL, GlobPattern, InvalidPatternError
from httpsim.matching import RequestDescriptor, canonical_header_key, match, match_resource
from httpsim.middleware import (
    OUTCOME_SCOPE_KEY,
    HTTPSimMiddleware,
    MatchOutcome,
    outcome_from_request,
    outcome_from_scope,
)
from httpsim.randomness import DEFAULT_RAND, ChaCha8Source, InvalidSeedLengthError, RandProvider, Seed
from httpsim.server import SimulatorServer, create_app

__all__ = [
    "DEFAULT_RAND",
    "MATCH_ALL",
    "OUTCOME_SCOPE_KEY",
    "AsyncioSleeper",
    "ChaCha8Source",
    "Config",
    "ConfigError",
    "DurRange",
    "Effect",
    "GlobPattern",
    "HTTPSimMiddleware",
    "InvalidPatternError",
    "InvalidSeedLengthError",
    "MatchOutcome",
    "RandProvider",
    "RecordingSleeper",
    "Replace",
    "RequestDescriptor",
    "Resource",
    "Seed",
    "SimulatorServer",
    "Sleeper",
    "__version__",
    "apply_effect",
    "canonical_header_key",
    "create_app",
    "format_duration",
    "load",
    "load_file",
    "match",
    "match_resource",
    "outcome_from_request",
    "outcome_from_scope",
    "parse_duration",
]
