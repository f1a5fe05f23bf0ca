"""
Pytest configuration and fixtures for Gate Pass Backend tests.
"""

import asyncio
import hashlib
import os
import shutil
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="gatepass_test_")
os.environ["GATEPASS_DB_PATH"] = os.path.join(_TEST_DATA_DIR, "gatepass.db")
os.environ["PDF_CACHE_BACKEND"] = "sqlite"
os.environ.pop("PDF_CACHE_DB_PATH", None)
os.environ.pop("LOGO_DATA_URI", None)
os.environ.pop("LOGO_PATH", None)
os.environ.pop("LOGO_BASE64_PATH", None)

from gatepass_backend.cache_store import SqliteCacheStore
from gatepass_backend.database import GatePassDatabase
from gatepass_backend.logo import LogoResolver, PlaceholderLogoSource
from gatepass_backend.main import app, get_database, get_pdf_service
from gatepass_backend.pdf_engine import PdfRenderError
from gatepass_backend.pdf_service import GatePassPdfService


class RecordingPdfEngine:
    """Stands in for Chromium: counts renders and returns bytes derived from the HTML."""

    def __init__(self, fail: bool = False):
        self.calls = 0
        self.rendered_html = []
        self.fail = fail
        self.closed = False

    async def render(self, html: str) -> bytes:
        self.calls += 1
        self.rendered_html.append(html)
        await asyncio.sleep(0)
        if self.fail:
            raise PdfRenderError("page crashed")
        digest = hashlib.sha256(html.encode("utf-8")).hexdigest()
        return b"%PDF-1.4\n% " + digest.encode("ascii") + b"\n%%EOF\n"

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(scope="session", autouse=True)
def test_data_dir():
    """Cleanup the directory holding the app's default database after all tests."""
    yield Path(_TEST_DATA_DIR)
    shutil.rmtree(_TEST_DATA_DIR, ignore_errors=True)


@pytest.fixture
def engine():
    return RecordingPdfEngine()


@pytest.fixture
def cache_store(tmp_path):
    return SqliteCacheStore(tmp_path / "pdf_cache.db")


@pytest.fixture
def pdf_service(cache_store, engine):
    """Service wired to a temp SQLite cache, the recording engine and the placeholder logo."""
    return GatePassPdfService(
        store=cache_store,
        engine=engine,
        logo_resolver=LogoResolver([PlaceholderLogoSource()]),
    )


@pytest.fixture
def gatepass_db(tmp_path):
    return GatePassDatabase(tmp_path / "gatepass.db")


@pytest.fixture
def client(gatepass_db, pdf_service):
    """Create a test client with isolated storage and no real browser."""
    app.dependency_overrides[get_database] = lambda: gatepass_db
    app.dependency_overrides[get_pdf_service] = lambda: pdf_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_gatepass():
    """A gate pass as the front end sends it."""
    return {
        "id": "GP-1",
        "gatepassNo": "GP/2024/0001",
        "date": "2024-03-05T09:30:00Z",
        "destination": "Site A",
        "destinationId": "DST-7",
        "carriedBy": "R. Kumar",
        "through": "Hand Carry",
        "mobileNo": "9876543210",
        "createdBy": "stores@example.com",
        "returnable": 1,
        "items": [
            {
                "slNo": 2,
                "description": "Network switch",
                "makeItem": "Cisco",
                "model": "C9200",
                "serialNo": "FOC1234X",
                "qty": 1,
            },
            {
                "slNo": 1,
                "description": "Laptop",
                "makeItem": "Dell",
                "model": "Latitude 5440",
                "serialNo": "7HX2QZ3",
                "qty": 2,
            },
        ],
    }
