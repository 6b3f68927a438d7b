"""
Pytest configuration for app-v1 tests.

Puts the src directory on the Python path so tests can import app_v1 without
an install, and provides an app wired to a mock logger.
"""
import sys
import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Add src directory to Python path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from app_v1.app import create_app  # noqa: E402
from app_v1.core import Config  # noqa: E402


@pytest.fixture
def mock_logger():
    """Logger double that records every call"""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def app(mock_logger):
    return create_app(Config(), mock_logger)


@pytest_asyncio.fixture
async def async_client(app):
    """In-process client for the app"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
