"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Plain builders live in factories.py.
"""
import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add project root and this directory (shared factories) to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).parent))

from config import Settings  # noqa: E402
from factories import BASE_TIME, make_item  # noqa: E402
from personalization.content.store import InMemoryContentStore  # noqa: E402
from personalization.engine import build_engine  # noqa: E402
from personalization.models import ContentDifficulty  # noqa: E402
from personalization.signals import InMemoryTelemetryStore  # noqa: E402

DATA_DIR = PROJECT_ROOT / "data"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (engine wiring, HTTP API)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "smoke" in path:
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def data_dir():
    return DATA_DIR


@pytest.fixture
def fixed_clock():
    """Clock frozen ten days after BASE_TIME."""
    now = BASE_TIME + timedelta(days=10)
    return lambda: now


@pytest.fixture
def test_settings(tmp_path):
    """Settings that never touch the working directory."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        content_service_url=None,
        catalog_path=None,
        telemetry_dir=None,
        session_dir=None,
        need_model_path=None,
        signal_window_days=None,
    )


@pytest.fixture
def catalog_store():
    """Content store loaded from data/sample_catalog.json."""
    return InMemoryContentStore.from_json(DATA_DIR / "sample_catalog.json")


@pytest.fixture
def quiz_video_items():
    """Ten quizzes and five videos on one subject, no prerequisites."""
    quizzes = [make_item(f"quiz-{i:02d}", "quiz") for i in range(10)]
    videos = [make_item(f"video-{i:02d}", "video", difficulty=ContentDifficulty.BEGINNER) for i in range(5)]
    return quizzes + videos


@pytest.fixture
def engine(test_settings, catalog_store, fixed_clock):
    """Engine over the sample catalog with in-memory telemetry and sessions."""
    return build_engine(
        test_settings,
        content_store=catalog_store,
        telemetry_store=InMemoryTelemetryStore(),
        clock=fixed_clock,
    )
