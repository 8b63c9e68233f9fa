import pytest
from fastapi.testclient import TestClient

from visitor_tracker.main import create_app


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def store(app):
    return app.state.store


@pytest.fixture
def make_payload():
    """Registro compuesto como lo envía el navegador (claves camelCase)."""

    def _make(**overrides):
        payload = {
            "fingerprint": "a" * 64,
            "audioSignature": "3A1F9C2B",
            "audioSignatureRaw": "124043",
            "ip": "177.10.20.30",
            "city": "São Paulo",
            "region": "Sao Paulo",
            "correctedRegion": "São Paulo",
            "country": "Brazil",
            "countryCode": "BR",
            "timezone": "America/Sao_Paulo",
            "userAgent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
            ),
            "language": "pt-BR",
            "platform": "Win32",
            "hardwareConcurrency": 8,
            "deviceMemory": 8,
            "screen": "1920x1080",
            "colorDepth": 24,
            "touchSupport": False,
            "doNotTrack": None,
            "referrer": "Direct",
            "page": "https://example.com/",
        }
        payload.update(overrides)
        return payload

    return _make
