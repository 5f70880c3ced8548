from __future__ import annotations

import base64
import time

from backoffice.core.security import issue_claims_token, sign_token_payload
from backoffice.governance import CustomerClaims, StoreOwnerClaims


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_orders_require_credentials(client, admin_headers):
    assert client.get("/orders").status_code == 401
    assert client.get("/orders", headers={"X-API-Key": "wrong-key"}).status_code == 401
    assert client.get("/orders", headers={"Authorization": "Basic abc"}).status_code == 401
    assert client.get("/orders", headers=admin_headers).status_code == 200


def test_expired_token_is_rejected(client):
    token = issue_claims_token(StoreOwnerClaims(store_id="store-a"), ttl_seconds=-10)
    response = client.get("/orders", headers=_bearer(token))
    assert response.status_code == 401
    assert response.json()["detail"] == "token expired"


def test_tampered_token_is_rejected(client):
    token = issue_claims_token(StoreOwnerClaims(store_id="store-a"))
    raw = bytearray(base64.urlsafe_b64decode(token))
    raw[0] ^= 0x01
    tampered = base64.urlsafe_b64encode(bytes(raw)).decode("ascii")

    response = client.get("/orders", headers=_bearer(tampered))
    assert response.status_code == 401
    assert response.json()["detail"] == "token signature mismatch"

    assert client.get("/orders", headers=_bearer("not-a-token")).status_code == 401


def test_tenant_role_without_binding_is_refused(client):
    exp = int(time.time()) + 60
    token = sign_token_payload({"role": "customer", "api_access": True, "exp": exp})
    response = client.get("/orders", headers=_bearer(token))
    assert response.status_code == 403
    assert response.json()["error"] == "missing_tenant_binding"

    token = sign_token_payload({"role": "auditor", "api_access": True, "exp": exp})
    response = client.get("/orders", headers=_bearer(token))
    assert response.status_code == 403
    assert response.json()["error"] == "invalid_role"


def test_claims_without_api_access_are_forbidden(client, headers_for):
    headers = headers_for(CustomerClaims(customer_id="cust-1", api_access=False))
    response = client.get("/orders", headers=headers)
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_public_tracking_needs_no_credentials(client):
    response = client.get("/orders/by-tracking-code/UNKNOWN1")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
