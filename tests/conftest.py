from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from membership.api.server import create_app
from membership.auth import crud
from membership.config import Config
from membership.db import connect, init_db


SECRET = "test-session-secret-0123456789abcdef0123456789abcdef"


@pytest.fixture
def cfg(tmp_path: Path) -> Config:
    c = Config(
        DB_DSN=str(tmp_path / "membership_test.sqlite"),
        SESSION_SECRET=SECRET,
        SESSION_TTL_SECONDS=600,
        SESSION_ROLLING=False,
        PASSWORD_HASH_ROUNDS=1000,
        ADMIN_BOOTSTRAP_USERNAME="",
        ADMIN_BOOTSTRAP_PASSWORD="",
    )
    init_db(c.DB_DSN)
    return c


@pytest.fixture
def conn(cfg: Config) -> Iterator:
    with connect(cfg.DB_DSN) as c:
        yield c


def make_client(cfg: Config) -> TestClient:
    return TestClient(create_app(cfg))


@pytest.fixture
def client(cfg: Config) -> Iterator[TestClient]:
    with make_client(cfg) as c:
        yield c


def signup(client: TestClient, name: str, username: str, password: str):
    return client.post(
        "/signup",
        data={"name": name, "username": username, "password": password},
        follow_redirects=False,
    )


def login(client: TestClient, username: str, password: str):
    return client.post(
        "/login",
        data={"username": username, "password": password},
        follow_redirects=False,
    )


def set_admin(cfg: Config, username: str, admin: bool = True) -> None:
    with connect(cfg.DB_DSN) as c:
        crud.update_admin_flag(c, username, admin)
