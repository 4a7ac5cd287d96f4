import os
import sys
import tempfile
from pathlib import Path

import pytest

# Required env vars for Config (set BEFORE any app imports)
_TEST_ENV = {
    "CAPTION_SERVICE_URL": "http://test-captioner:8000/caption",
    "CAPTION_SERVICE_TIMEOUT": "5",
    "LOG_DIR": str(Path(tempfile.gettempdir()) / "caption-relay-test-logs"),
}


def _ensure_env():
    """Set required env vars (only if not already set)."""
    for key, value in _TEST_ENV.items():
        os.environ.setdefault(key, value)


def _ensure_path():
    """Add project root to sys.path."""
    project_root = str(Path(__file__).parent.parent)
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_env()
_ensure_path()
# Prevent prometheus from trying to use multiprocess mode
os.environ.pop("PROMETHEUS_MULTIPROC_DIR", None)


class StubCaptionClient:
    """In-process captioning collaborator that records every call."""

    def __init__(self, caption: str = "A cat sitting on a windowsill", error=None):
        self.caption = caption
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def get_caption(self, image_base64: str, request_id: str) -> str:
        self.calls.append((image_base64, request_id))
        if self.error is not None:
            raise self.error
        return self.caption


@pytest.fixture
def sample_image_base64():
    """A 1x1 transparent PNG"""
    return (
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
    )


@pytest.fixture
def sample_caption_request(sample_image_base64):
    """Sample /process request payload"""
    return {"image_base64": sample_image_base64}


@pytest.fixture
def stub_caption_client():
    return StubCaptionClient()
