from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from main import create_app
from src.core.config import Settings
from src.middleware.rate_limit import InMemoryRateLimiter
from src.routers.assessment import get_email_client
from src.services.email_delivery import EmailDeliveryClient

CONTACT = {"firstName": "Jan", "lastName": "Jansen", "companyName": "Acme BV", "email": "jan@acme.nl"}


@pytest.fixture
def api():
    settings = Settings(rate_limit_max_requests=5, rate_limit_window_seconds=60)
    app = create_app(settings=settings, limiter=InMemoryRateLimiter(5, 60))
    email_client = MagicMock(spec=EmailDeliveryClient)
    email_client.send = AsyncMock(return_value="msg_1")
    app.dependency_overrides[get_email_client] = lambda: email_client
    with TestClient(app) as test_client:
        yield test_client, email_client


@pytest.fixture
def full_scores_payload(make_scores):
    return {"contactInfo": CONTACT, "scores": make_scores(3), "language": "en"}


def test_health(api):
    client, _ = api
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "catalog_version": "2.0.0"}


def test_security_headers_on_api_responses(api):
    client, _ = api
    response = client.get("/api/v1/assessment/questions")
    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_cors_preflight_is_not_rate_limited(api):
    client, _ = api
    for _ in range(8):
        response = client.options(
            "/api/v1/assessment/submit",
            headers={"Origin": "https://example.com", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 200


def test_submit_rate_limited_after_five_requests(api, full_scores_payload):
    client, email_client = api
    for _ in range(5):
        response = client.post("/api/v1/assessment/submit", json=full_scores_payload)
        assert response.status_code == 200

    response = client.post("/api/v1/assessment/submit", json=full_scores_payload)

    assert response.status_code == 429
    assert response.json()["detail"] == "Te veel verzoeken. Probeer het later opnieuw."
    assert int(response.headers["retry-after"]) > 0
    assert email_client.send.await_count == 5


def test_scoring_is_not_rate_limited(api, make_scores):
    client, _ = api
    for _ in range(7):
        response = client.post("/api/v1/assessment/score", json={"scores": make_scores(2)})
        assert response.status_code == 200
