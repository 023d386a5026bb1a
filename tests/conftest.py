from contextlib import contextmanager
import importlib
import os
import random

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from starlette.testclient import TestClient
from sqlmodel import Session
from typer.testing import CliRunner

from hostpanel.api.deps import get_dns_client, get_hestia_client, get_settings
from hostpanel.config import Settings
from hostpanel.db import build_engine, get_session, init_db
from hostpanel.main import app
from hostpanel.services.provisioning import CustomerProvisioner
from tests.remote_fakes import FakeDns, FakeHestia


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite:///:memory:",
        hestia_host="panel.example.net",
        hestia_port="8083",
        hestia_user="admin",
        hestia_password="admin-secret",
        hestia_access_key=None,
        hestia_secret_key=None,
        hestia_verify_tls=False,
        aapanel_host="dns.example.net",
        aapanel_port="9000",
        aapanel_secret_key="dns-secret",
        aapanel_security_entrance="",
        aapanel_verify_tls=False,
        primary_domain="lumicloude.my.id",
        edge_ip="198.41.192.67",
        remote_timeout_sec=5.0,
    )


@pytest.fixture
def db_session():
    engine = build_engine("sqlite:///:memory:")
    init_db(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def hestia() -> FakeHestia:
    return FakeHestia()


@pytest.fixture
def dns() -> FakeDns:
    return FakeDns()


@pytest.fixture
def provisioner(db_session, hestia, dns, settings) -> CustomerProvisioner:
    return CustomerProvisioner(
        session=db_session, hestia=hestia, dns=dns, settings=settings, rng=random.Random(42)
    )


@pytest.fixture
def client(db_session, hestia, dns, settings):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_session] = override_get_db
    app.dependency_overrides[get_hestia_client] = lambda: hestia
    app.dependency_overrides[get_dns_client] = lambda: dns
    app.dependency_overrides[get_settings] = lambda: settings

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture()
def cli_runner(tmp_path, monkeypatch, hestia, dns):
    db_path = tmp_path / "test_cli.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")

    import hostpanel.db as db

    importlib.reload(db)
    init_db(db.engine)

    import hostpanel.cli as cli

    importlib.reload(cli)

    @contextmanager
    def fake_remote_clients():
        yield hestia, dns

    monkeypatch.setattr(cli, "_remote_clients", fake_remote_clients)
    return CliRunner(), cli.app
