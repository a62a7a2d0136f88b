from fastapi.testclient import TestClient
from pagecomposer.main import app
from pagecomposer.core.settings import settings

client = TestClient(app)

def test_ping():
    r = client.get(f"{settings.API_V1_STR}/health/ping")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_unknown_session_is_404():
    r = client.get(f"{settings.API_V1_STR}/editor/pages/999")
    assert r.status_code == 404
