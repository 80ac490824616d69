"""Pytest configuration and fixtures for integration tests.

Integration tests call the real Gemini API and write to a temporary
Chroma directory. They are skipped when GOOGLE_API_KEY (or its alias
GEMINI_API_KEY) is not configured.
"""

import os
from pathlib import Path

import pytest
import pytest_asyncio
from dotenv import load_dotenv

from chef_rag.app.container import Container
from chef_rag.utils.config import Config


def pytest_configure(config):
    """Load .env from the project root before collection."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    print("\n" + "=" * 70)
    print("Note: Integration tests require a valid GOOGLE_API_KEY")
    print(f"Environment loaded from: {env_path}")
    print("  - Vector store: temporary Chroma directory per test")
    print("  - Chat sessions: temporary SQLite file per test")
    print("=" * 70 + "\n")


@pytest.fixture(scope="session", autouse=True)
def check_api_keys():
    """Skip every integration test when no Gemini key is configured."""
    if not (os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")):
        pytest.skip(
            "Integration tests skipped. Missing API key: GOOGLE_API_KEY. Please set it in your .env file.",
            allow_module_level=True,
        )


@pytest.fixture
def integration_settings(tmp_path):
    """Gemini-only configuration isolated under tmp_path."""
    settings = Config()
    settings.LLM_PROVIDER = "gemini"
    settings.CHAT_PROVIDER = "gemini"
    settings.EMBEDDING_PROVIDER = "gemini"
    settings.VECTOR_STORE_URI = str(tmp_path / "chroma")
    settings.CHAT_DB_FILE = str(tmp_path / "chat.db")
    settings.DATABASE_URL = None
    settings.LLM_RETRIES = 2
    settings.REQUEST_TIMEOUT = 60
    return settings


@pytest_asyncio.fixture
async def container(integration_settings):
    """Fully initialized service graph."""
    instance = Container(integration_settings)
    await instance.initialize()
    yield instance
    await instance.close()
