"""
Pytest Configuration and Fixtures

Shared fixtures for the unit suite. Every provider (embeddings, generation,
web search) is replaced by an in-process fake from ``fakes``, so the suite
runs without Docker, network access or API keys.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults, set before any beacon import
#
# 1. Load .env first so that local credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "POSTGRES_USER": "beacon",
    "POSTGRES_PASSWORD": "beacon_password",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "beacon_db",
    "OPENAI_API_KEY": "mock",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import pytest  # noqa: E402
from fakes import (  # noqa: E402
    FakeEmbeddingClient,
    FakeGenerationClient,
    SleepRecorder,
)

from beacon.core.config import BeaconSettings  # noqa: E402
from beacon.core.keywords import KeywordTable, default_keyword_table  # noqa: E402


@pytest.fixture
def keyword_table() -> KeywordTable:
    """Packaged keyword taxonomy."""
    return default_keyword_table()


@pytest.fixture
def test_settings() -> BeaconSettings:
    """Settings isolated from the developer's .env file."""
    return BeaconSettings(
        _env_file=None,
        VECTOR_BACKEND="memory",
        LIGHT_MODEL="light-model",
        HEAVY_MODEL="heavy-model",
        MAX_TOKENS=2048,
        MAX_QUERY_LENGTH=1000,
        BRAVE_API_KEY=None,
    )


@pytest.fixture
def embedder() -> FakeEmbeddingClient:
    """Fresh bag-of-words embedder (own vocabulary per test)."""
    return FakeEmbeddingClient()


@pytest.fixture
def generator() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
