"""
Pytest configuration and fixtures.
"""

import os
import sys
from unittest.mock import MagicMock

import pytest

# Modules live at the project root (run pytest from there or via pyproject's pythonpath)
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import gemini_client
from app import create_app
from config import DispatcherConfig, TestingConfig


@pytest.fixture
def mock_config():
    return DispatcherConfig(use_mock=True, mock_delay_scale=0)


@pytest.fixture
def live_config():
    return DispatcherConfig(
        base_url='http://primary.test/fns',
        hosting_origin='http://host.test',
        project='demo-project',
        use_mock=False,
        timeout_seconds=5,
    )


@pytest.fixture
def log_events():
    events = []

    def callback(kind, message, data=None):
        events.append((kind, message, data))
    callback.events = events
    return callback


@pytest.fixture
def app():
    gemini_client.reset_client()
    app = create_app(TestingConfig)
    yield app
    gemini_client.reset_client()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_gemini(monkeypatch):
    """Replace the shared Gemini client with a MagicMock."""
    fake = MagicMock()
    monkeypatch.setattr(gemini_client, 'get_client', lambda: fake)
    return fake
