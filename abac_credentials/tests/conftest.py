"""Shared fixtures for the credential resolution tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from abac_credentials.identity import CallerIdentity  # noqa: E402
from abac_credentials.tests.fakes import FakeClock  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def identity() -> CallerIdentity:
    return CallerIdentity(
        arn="arn:aws:sts::123456789012:assumed-role/analyst/jane.doe@example.com",
        tags={"team": "x", "project": "atlas"},
    )
