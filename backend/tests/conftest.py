"""
RxScribe Backend: Test Configuration (conftest.py)
===================================================

Shared pytest fixtures.

Fixtures:
    ├── fake_llm: Deterministic LLMService that records every request
    ├── record_store: In-memory RecordStore that records every create call
    ├── mock_db_session: AsyncMock standing in for an AsyncSession
    ├── temp_storage: Fresh storage directory per test
    ├── png_bytes / jpeg_bytes / png_data_url: Real images generated with Pillow
    └── test_client: HTTPX AsyncClient wired to the app with overrides

No test talks to Gemini or to a real database.
"""

import base64
import io
import os
import tempfile
from typing import List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

# Must be set before anything imports app.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="rxscribe_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from app.exceptions import ProviderRequestError
from app.schemas.records import RecordFields, UploadedImage
from app.services.llm_base import ImagePart, LLMService
from app.services.record_store import RecordStore


class FakeLLMService(LLMService):
    """
    Stand-in provider.

    Returns `reply` for every request, or raises ProviderRequestError when
    `fail` is set. Each call is appended to `calls` as (prompt, image).
    """

    def __init__(self, reply: str = "Amoxicillin 500mg, 1 capsule three times daily"):
        self.reply = reply
        self.fail = False
        self.calls: List[Tuple[str, Optional[ImagePart]]] = []

    async def generate(self, prompt: str, image: Optional[ImagePart] = None) -> str:
        self.calls.append((prompt, image))
        if self.fail:
            raise ProviderRequestError(message="quota exceeded")
        return self.reply

    async def health_check(self) -> bool:
        return not self.fail


class InMemoryRecordStore(RecordStore):
    """Record store double; `fail` makes create_record raise."""

    def __init__(self, record_id: str = "rec-123"):
        self.record_id = record_id
        self.fail = False
        self.calls: List[Tuple[RecordFields, Optional[UploadedImage]]] = []

    async def create_record(
        self,
        fields: RecordFields,
        attachment: Optional[UploadedImage] = None,
    ) -> str:
        self.calls.append((fields, attachment))
        if self.fail:
            raise ConnectionError("record store unreachable")
        return self.record_id


def _image_bytes(fmt: str) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(255, 255, 255)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def fake_llm():
    return FakeLLMService()


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def mock_db_session():
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def png_bytes():
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return _image_bytes("JPEG")


@pytest.fixture
def png_data_url(png_bytes):
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


@pytest_asyncio.fixture
async def test_client(fake_llm, record_store):
    """
    AsyncClient against the real app with the AI provider and record store
    replaced by the fakes above. Requests carry no user unless a test sends
    the X-User-ID header.
    """
    from app.dependencies import get_ai_service, get_record_store
    from app.main import app
    from app.services.ai_service import MedicalAIService

    app.dependency_overrides[get_ai_service] = lambda: MedicalAIService(fake_llm)
    app.dependency_overrides[get_record_store] = lambda: record_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
