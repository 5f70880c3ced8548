from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import backoffice.persistence.pg as pg
from backoffice.core.config import get_settings
from backoffice.core.security import issue_claims_token
from backoffice.governance import Claims
from backoffice.persistence.models import Base


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite"


@pytest.fixture(scope="session", autouse=True)
def configure_test_engine(test_db_path: Path):
    settings = get_settings()
    settings.auth_enabled = True

    engine = pg.configure_engine(f"sqlite+pysqlite:///{test_db_path}")

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(configure_test_engine):
    from backoffice.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def session(configure_test_engine):
    with pg.session_scope() as s:
        yield s


@pytest.fixture()
def headers_for():
    def _headers(claims: Claims) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_claims_token(claims)}"}

    return _headers


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": get_settings().admin_api_key}
