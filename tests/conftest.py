"""
Shared pytest configuration.

This file ensures the project root is on sys.path so that
`import dialogpro` and `import tests.utils` work in all tests.
"""

import sys
from pathlib import Path

import pytest


# Ensure project root is importable for test modules.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from tests.utils import FakeRedis, make_settings  # noqa: E402


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def settings():
    return make_settings()
