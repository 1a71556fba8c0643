import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure project root (for "src") and this directory (for "testkit") are importable
ROOT = Path(__file__).resolve().parents[1]
HERE = Path(__file__).resolve().parent
for path in (ROOT, HERE):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("CACHE_DISABLED", "1")
os.environ.setdefault("USE_AI_PLANNER", "0")

from testkit import FakeImageModel  # noqa: E402


@pytest.fixture()
def image_model() -> FakeImageModel:
    return FakeImageModel()


@pytest.fixture()
def make_client(image_model):
    """Build a TestClient over a fresh app; extra dependency overrides may be passed."""
    # lazy import after env configured
    from src.infrastructure.api.dependencies import get_image_model
    from src.infrastructure.config import Settings
    from src.main import create_app

    def _make(settings=None, container=None, overrides=None) -> TestClient:
        settings = settings or Settings(cache_disabled=True, use_ai_planner=False)
        app = create_app(settings=settings, container=container)
        app.dependency_overrides[get_image_model] = lambda: image_model
        for dep, provider in (overrides or {}).items():
            app.dependency_overrides[dep] = provider
        return TestClient(app)

    return _make


@pytest.fixture()
def client(make_client) -> TestClient:
    return make_client()
