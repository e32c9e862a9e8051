# tests/conftest.py
import pytest
from cryptography.fernet import Fernet

from dashboard import create_app
from dashboard.crypto import FernetCipher
from dashboard.sources import SourceRegistry


@pytest.fixture
def sources():
    return SourceRegistry(timeout=0.2)


@pytest.fixture
def app(tmp_path, sources):
    return create_app(
        {
            "TESTING": True,
            "CONFIG_PATH": tmp_path / "dashboard-config.json.enc",
            "CIPHER": FernetCipher(Fernet.generate_key()),
            "SOURCES": sources,
        }
    )


@pytest.fixture
def client(app):
    return app.test_client()
