from __future__ import annotations

import base64
import binascii
import hmac
import json
import time
from hashlib import sha256

from fastapi import Header, HTTPException

from backoffice.core.config import get_settings
from backoffice.governance.claims import AdminClaims, Claims, claims_to_dict, parse_claims


def _auth_error(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def _token_key() -> bytes:
    settings = get_settings()
    return settings.token_signing_secret.encode("utf-8")


def sign_token_payload(payload: dict) -> str:
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    mac = hmac.new(_token_key(), body, sha256).digest()
    return base64.urlsafe_b64encode(body + mac).decode("ascii")


def issue_claims_token(claims: Claims, ttl_seconds: int | None = None) -> str:
    settings = get_settings()
    now = int(time.time())
    payload = {
        **claims_to_dict(claims),
        "iat": now,
        "exp": now + (ttl_seconds if ttl_seconds is not None else settings.claims_token_ttl_seconds),
    }
    return sign_token_payload(payload)


def verify_claims_token(token: str) -> dict:
    """Check signature and expiry; returns the raw payload (not yet typed claims)."""
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
        raise _auth_error("invalid token encoding") from exc

    if len(raw) <= 32:
        raise _auth_error("invalid token body")

    body, mac = raw[:-32], raw[-32:]
    expected = hmac.new(_token_key(), body, sha256).digest()
    if not hmac.compare_digest(mac, expected):
        raise _auth_error("token signature mismatch")

    payload = json.loads(body.decode("utf-8"))
    if int(time.time()) > int(payload.get("exp", 0)):
        raise _auth_error("token expired")
    return payload


def _extract_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _auth_error("invalid authorization header")
    return token.strip()


def get_claims(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
) -> Claims:
    settings = get_settings()
    if not settings.auth_enabled:
        return AdminClaims(subject=settings.admin_actor_id)

    token = _extract_bearer(authorization)
    if token:
        return parse_claims(verify_claims_token(token))

    if x_api_key and x_api_key.strip():
        if hmac.compare_digest(x_api_key.strip(), settings.admin_api_key):
            return AdminClaims(subject=settings.admin_actor_id)
        raise _auth_error("invalid api key")

    raise _auth_error("missing credentials")
