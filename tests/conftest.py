"""Shared fixtures and Hypothesis profiles for httpsim tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from httpsim.config import Config, load
from httpsim.effects import RecordingSleeper
from httpsim.randomness import ChaCha8Source, Seed

# =============================================================================
# Fixed seeds
# =============================================================================

SEED_ASCENDING = "0123456789abcdef0123456789abcdef"
SEED_DESCENDING = "fedcba9876543210fedcba9876543210"


@pytest.fixture
def rand() -> ChaCha8Source:
    """Reproducible randomness source (descending seed)."""
    return ChaCha8Source(Seed.from_bytes(SEED_DESCENDING))


@pytest.fixture
def sleeper() -> RecordingSleeper:
    """Sleeper that records delays instead of waiting."""
    return RecordingSleeper()


@pytest.fixture
def example_config() -> Config:
    """Config exercising replacement, delay, header and query constraints."""
    return load(
        """
resources:
  - path: /specific
    methods: [DELETE]
    effect:
      replace:
        status-code: 404
        body: "Specific resource not found"
        headers:
          Content-Type: text/plain
  - path: /slow/*
    effect:
      delay:
        min: 1s
        max: 2s
  - path: /broken
    query:
      mode: [fail]
    effect:
      replace:
        status-code: 500
        body: "Internal Server Error"
        headers:
          Content-Type: text/plain
          X-Custom-Header: custom-value
  - path: /empty
    effect:
      replace:
        status-code: 204
  - path: /tagged
    headers:
      X-Tag: ["a*"]
"""
    )


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop handlers installed by configure_logging() during a test."""
    yield
    root = logging.getLogger()
    for handler in [h for h in root.handlers if type(h) is logging.StreamHandler]:
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)
    structlog.reset_defaults()


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
