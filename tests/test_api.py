import time
import types

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from lms_email.api import create_app
from lms_email.config import EmailServiceConfig
from lms_email.core import LmsEmailTooBigException, UnsignedRecipientError
from lms_email.models import SendingMethod
from lms_email.security import SEND_SCOPE

JWT_SECRET = "test-jwt-secret"


def make_token(scope: str = SEND_SCOPE, expires_in: int = 300, secret: str = JWT_SECRET, **claims) -> str:
    payload = {"sub": "canvas-tool", "scope": scope, "exp": int(time.time()) + expires_in}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


class DummyService:
    def __init__(self, profiles=("emailrest",)):
        self.config = EmailServiceConfig(env="reg", jwt_key=JWT_SECRET, jwt_algorithms=["HS256"], profiles=list(profiles))
        self.metrics = types.SimpleNamespace(generate_latest=lambda: b"metrics-data")
        self.calls = []
        self.raise_error: Exception | None = None

    async def send_email(self, details, digitally_sign, unsigned_to=None, method=SendingMethod.PRIMARY):
        self.calls.append((details, digitally_sign, unsigned_to, method))
        if self.raise_error:
            raise self.raise_error

    def get_standard_header(self):
        return f"[LMS {self.config.env.upper()} Notifications]"


@pytest.fixture
def client_and_service():
    svc = DummyService()
    return TestClient(create_app(svc)), svc


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


PAYLOAD = {"subject": "Hi", "body": "Body", "recipients": ["a@iu.edu"], "enableHtml": True}


def test_status_and_metrics_are_open(client_and_service):
    client, _ = client_and_service
    assert client.get("/status").json() == {"ok": True}
    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.content == b"metrics-data"


def test_send_requires_token(client_and_service):
    client, svc = client_and_service
    response = client.post("/rest/email/send", json=PAYLOAD)
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"
    assert svc.calls == []


def test_send_rejects_invalid_token(client_and_service):
    client, svc = client_and_service
    response = client.post("/rest/email/send", json=PAYLOAD, headers=auth(make_token(secret="other-secret")))
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"
    assert svc.calls == []


def test_send_rejects_expired_token(client_and_service):
    client, _ = client_and_service
    response = client.post("/rest/email/send", json=PAYLOAD, headers=auth(make_token(expires_in=-60)))
    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"


def test_send_requires_send_scope(client_and_service):
    client, svc = client_and_service
    response = client.post("/rest/email/send", json=PAYLOAD, headers=auth(make_token(scope="lms:rest")))
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient scope"
    assert svc.calls == []


def test_send_dispatches_to_service(client_and_service):
    client, svc = client_and_service
    response = client.post(
        "/rest/email/send",
        params={"digitallySign": "true", "unsignedToEmailToUseInPreProd": "qa@iu.edu", "sendingMethod": "SECONDARY"},
        json=PAYLOAD,
        headers=auth(make_token(scope=f"openid {SEND_SCOPE}")),
    )
    assert response.status_code == 200
    assert response.json() == {"ok": True}

    details, digitally_sign, unsigned_to, method = svc.calls[0]
    assert details.subject == "Hi"
    assert details.enable_html is True
    assert digitally_sign is True
    assert unsigned_to == "qa@iu.edu"
    assert method is SendingMethod.SECONDARY


def test_send_defaults(client_and_service):
    client, svc = client_and_service
    client.post("/rest/email/send", json=PAYLOAD, headers=auth(make_token()))
    _, digitally_sign, unsigned_to, method = svc.calls[0]
    assert digitally_sign is False
    assert unsigned_to is None
    assert method is SendingMethod.PRIMARY


def test_authorities_claim_is_accepted(client_and_service):
    client, svc = client_and_service
    token = make_token(scope="", authorities=[SEND_SCOPE])
    response = client.post("/rest/email/send", json=PAYLOAD, headers=auth(token))
    assert response.status_code == 200
    assert len(svc.calls) == 1


def test_too_big_maps_to_413(client_and_service):
    client, svc = client_and_service
    svc.raise_error = LmsEmailTooBigException()
    response = client.post("/rest/email/send", json=PAYLOAD, headers=auth(make_token()))
    assert response.status_code == 413
    assert response.json()["detail"] == "Email message is too big"


def test_missing_redirect_maps_to_400(client_and_service):
    client, svc = client_and_service
    svc.raise_error = UnsignedRecipientError()
    response = client.post("/rest/email/send", json=PAYLOAD, headers=auth(make_token()))
    assert response.status_code == 400


def test_header_endpoint(client_and_service):
    client, _ = client_and_service
    response = client.get("/rest/email/header", headers=auth(make_token()))
    assert response.json() == {"ok": True, "header": "[LMS REG Notifications]"}


def test_docs_disabled_without_swagger_profile(client_and_service):
    client, _ = client_and_service
    assert client.get("/api/email/docs").status_code == 404
    assert client.get("/api/email/openapi.json").status_code == 404
    assert client.get("/docs").status_code == 404


def test_docs_open_with_emailrest_and_swagger_profiles():
    client = TestClient(create_app(DummyService(profiles=("emailrest", "swagger"))))
    schema = client.get("/api/email/openapi.json")
    assert schema.status_code == 200
    assert "/rest/email/send" in schema.json()["paths"]
    assert client.get("/api/email/docs").status_code == 200


def test_unknown_rest_path_requires_token(client_and_service):
    client, _ = client_and_service
    assert client.get("/rest/email/unknown").status_code == 401
    assert client.post("/rest/email/nested/path", json={}).status_code == 401


def test_unknown_rest_path_is_404_once_authorised(client_and_service):
    client, _ = client_and_service
    response = client.get("/rest/email/unknown", headers=auth(make_token()))
    assert response.status_code == 404
