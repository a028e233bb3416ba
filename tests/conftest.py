"""Pytest configuration for all tests."""

import os
import sys

import pytest

# Make the shared fakes importable regardless of pytest's import mode
tests_dir = os.path.abspath(os.path.dirname(__file__))
if tests_dir not in sys.path:
    sys.path.insert(0, tests_dir)

from fakes import FixedClock, NOW  # noqa: E402


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)
