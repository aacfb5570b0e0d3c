"""Pytest configuration and fixtures."""

import sys
from collections.abc import Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from everywhere.app import create_app
from everywhere.config import Settings
from everywhere.core.exclusions import ExclusionFilter
from everywhere.events.bus import EventBus
from fakes import ROOT, FakeWorkspace


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        _env_file=None,
        host="127.0.0.1",
        port=8000,
        debug=True,
        workspace_roots_raw=str(ROOT),
        watch_enabled=False,
        include_text=False,
    )


@pytest.fixture
def workspace() -> FakeWorkspace:
    """Fake host with a small source tree."""
    return FakeWorkspace(
        {
            "src/Foo.ts": "export class Foo {}\n",
            "src/Bar.ts": "export class Bar {}\n",
            "README.md": "# Demo\n",
            "node_modules/lib/index.js": "module.exports = {}\n",
        }
    )


@pytest.fixture
def exclusions() -> ExclusionFilter:
    """Default exclusion filter rooted at the fake workspace."""
    return ExclusionFilter(roots=[ROOT])


@pytest.fixture
def event_bus() -> EventBus:
    """Fresh event bus."""
    return EventBus(queue_size=100, max_subscribers=100)


@pytest.fixture
def client(settings: Settings, workspace: FakeWorkspace) -> Iterator[TestClient]:
    """Create test client with configured app and running lifespan."""
    app = create_app(settings, workspace=workspace)
    with TestClient(app) as test_client:
        yield test_client
