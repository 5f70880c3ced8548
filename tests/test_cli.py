from __future__ import annotations

import sys

import pytest

from backoffice import cli
from backoffice.core.security import verify_claims_token


def test_token_issue_prints_verifiable_token(monkeypatch, capsys):
    monkeypatch.setattr(
        sys,
        "argv",
        ["backoffice", "token", "issue", "--role", "store_owner", "--store-id", "store-9", "--ttl", "120"],
    )
    assert cli.main() == 0

    payload = verify_claims_token(capsys.readouterr().out.strip())
    assert payload["role"] == "store_owner"
    assert payload["store_id"] == "store-9"
    assert payload["api_access"] is True
    assert payload["exp"] - payload["iat"] == 120


def test_token_issue_without_tenant_id_exits_with_error(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["backoffice", "token", "issue", "--role", "customer"])
    with pytest.raises(SystemExit) as excinfo:
        cli.main()

    assert excinfo.value.code == 1
    assert "customer claims carry no customer_id" in capsys.readouterr().err
