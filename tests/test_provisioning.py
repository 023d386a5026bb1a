from __future__ import annotations

import random

import httpx
import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from hostpanel.models import ActivityLogORM, CustomerORM, DatabaseORM, WebsiteORM
from hostpanel.rpc import RemoteResult
from hostpanel.services.aapanel_adapter import AAPanelClient
from hostpanel.services.errors import (
    ConfigurationException,
    PersistenceException,
    ProvisioningException,
    RemoteAccountException,
    RemoteHostException,
    ValidationException,
)
from hostpanel.services.provisioning import CustomerProvisioner
from tests.remote_fakes import failed

REQUEST = {"name": "Jane Doe", "email": "jane.doe@example.com"}


def _activity(db_session) -> list[ActivityLogORM]:
    return list(db_session.exec(select(ActivityLogORM).order_by(ActivityLogORM.id)).all())


def test_happy_path_with_database(provisioner, db_session, hestia, dns) -> None:
    result = provisioner.provision({**REQUEST, "packageId": "business", "needDatabase": True, "phone": "123"})

    username = result.credentials.hestia_username
    subdomain = result.customer.subdomain
    assert username.startswith("cust")
    assert len(username) <= 16
    assert subdomain.endswith(".lumicloude.my.id")
    assert result.credentials.hestia_url == "https://panel.example.net:8083"
    assert result.website.url == f"https://{subdomain}"
    assert result.website.status == "ACTIVE"
    assert result.website.ssl_enabled is True
    assert result.customer.package == "Business"
    assert result.database.name == f"{username}_db"
    assert result.database.username == f"{username}_user"
    assert result.database.host == "localhost"
    assert result.database.port == 3306
    assert len(result.database.password) == 16
    assert result.resource_limits.model_dump() == {
        "disk_space": "2930 MB",
        "bandwidth": "19.53 GB",
        "websites": 3,
        "databases": 3,
    }
    assert result.next_steps == [f"Website is ready at {subdomain}"]

    user_call = hestia.called("create_user")[0]
    assert user_call["package"] == "Business"
    assert user_call["first_name"] == "Jane"
    assert user_call["last_name"] == "Doe"
    assert hestia.called("add_web_domain")[0]["aliases"] == [f"www.{subdomain}"]
    assert hestia.called("force_ssl")
    assert hestia.called("create_database")[0]["charset"] == "utf8mb4"
    assert dns.records == [
        {"domain": "lumicloude.my.id", "name": subdomain.split(".")[0], "ip": "198.41.192.67", "ttl": 600}
    ]

    customer = db_session.get(CustomerORM, result.customer.id)
    assert customer.hestia_username == username
    assert customer.phone == "123"
    assert customer.status == "ACTIVE"
    assert customer.next_billing_date is not None
    website = customer.websites[0]
    assert website.status == "ACTIVE"
    assert website.ssl_force is True
    assert website.dns_verified is True
    assert website.ip_address == "198.41.192.67"
    assert [db.name for db in customer.databases] == [f"{username}_db"]

    entries = _activity(db_session)
    assert [(e.action, e.status) for e in entries] == [("CREATE_CUSTOMER", "SUCCESS")]
    assert entries[0].resource_id == customer.id
    assert entries[0].details_json["databaseCreated"] is True
    assert entries[0].details_json["hestiaUsername"] == username


def test_defaults_to_starter_package(provisioner) -> None:
    result = provisioner.provision(REQUEST)

    assert result.customer.package == "Starter"
    assert result.database is None
    assert result.resource_limits.disk_space == "500 MB"
    assert result.resource_limits.bandwidth == "0.98 GB"


def test_enterprise_limits_render_unlimited_bandwidth(provisioner) -> None:
    result = provisioner.provision({**REQUEST, "packageId": "enterprise"})
    assert result.resource_limits.bandwidth == "Unlimited"
    assert result.resource_limits.websites == 7


def test_custom_domain_adds_aliases_and_cname_instructions(provisioner, hestia) -> None:
    result = provisioner.provision({**REQUEST, "customDomain": "JaneBakery.com"})
    subdomain = result.customer.subdomain

    assert result.customer.custom_domain == "janebakery.com"
    assert hestia.called("add_web_domain")[0]["aliases"] == [
        f"www.{subdomain}",
        "janebakery.com",
        "www.janebakery.com",
    ]
    assert result.next_steps == [
        "Customer needs to add CNAME record:",
        "Type: CNAME",
        "Name: www",
        f"Value: {subdomain}",
        "TTL: 3600",
    ]


def test_invalid_request_has_no_remote_side_effects(provisioner, db_session, hestia, dns) -> None:
    with pytest.raises(ValidationException) as exc_info:
        provisioner.provision({"name": "J", "email": "not-an-email", "packageId": "platinum"})

    fields = {tuple(d["loc"]) for d in exc_info.value.details}
    assert {("name",), ("email",), ("packageId",)} <= fields
    assert hestia.calls == []
    assert dns.records == []
    assert db_session.exec(select(CustomerORM)).all() == []
    entries = _activity(db_session)
    assert [(e.action, e.status) for e in entries] == [("CREATE_CUSTOMER", "FAILED")]


def test_unknown_package_is_a_configuration_error(db_session, hestia, dns, settings) -> None:
    provisioner = CustomerProvisioner(
        session=db_session, hestia=hestia, dns=dns, settings=settings, package_resolver=lambda package_id: None
    )
    with pytest.raises(ConfigurationException):
        provisioner.provision(REQUEST)
    assert hestia.calls == []


def test_account_failure_aborts_without_compensation(provisioner, db_session, hestia, dns) -> None:
    hestia.fail("create_user", failed(4, "user exists"))

    with pytest.raises(RemoteAccountException, match="Failed to create Hestia user: user exists"):
        provisioner.provision(REQUEST)

    assert [name for name, _ in hestia.calls] == ["create_user"]
    assert dns.records == []
    entry = _activity(db_session)[-1]
    assert entry.status == "FAILED"
    assert "user exists" in entry.error


def test_host_failure_reverts_the_account(provisioner, db_session, hestia, dns) -> None:
    hestia.fail("add_web_domain")

    with pytest.raises(RemoteHostException, match="Failed to create domain"):
        provisioner.provision(REQUEST)

    username = hestia.called("create_user")[0]["username"]
    assert hestia.called("delete_user") == [{"username": username}]
    assert hestia.user_exists(username) is False
    assert hestia.called("enable_ssl") == []
    assert dns.records == []
    assert db_session.exec(select(CustomerORM)).all() == []
    entry = _activity(db_session)[-1]
    assert entry.status == "FAILED"
    assert entry.details_json["compensations"][0]["succeeded"] is True
    assert "userCreated" not in entry.details_json


def test_failed_compensation_is_reported_in_audit(provisioner, db_session, hestia) -> None:
    hestia.fail("add_web_domain")
    hestia.fail("delete_user", failed(1, "backend busy"))

    with pytest.raises(RemoteHostException):
        provisioner.provision(REQUEST)

    details = _activity(db_session)[-1].details_json
    assert details["userCreated"] is True
    assert details["compensations"][0]["error"] == "backend busy"


def test_tls_failure_still_succeeds_with_ssl_pending(provisioner, db_session, hestia) -> None:
    hestia.fail("enable_ssl")

    result = provisioner.provision(REQUEST)

    assert result.website.ssl_enabled is False
    assert result.website.status == "SSL_PENDING"
    assert hestia.called("force_ssl") == []
    website = db_session.exec(select(WebsiteORM)).one()
    assert website.status == "SSL_PENDING"
    assert website.ssl_enabled is False
    assert website.ssl_force is False


def test_force_ssl_failure_keeps_certificate(provisioner, db_session, hestia) -> None:
    hestia.fail("force_ssl")

    result = provisioner.provision(REQUEST)

    assert result.website.ssl_enabled is True
    website = db_session.exec(select(WebsiteORM)).one()
    assert website.ssl_force is False


def test_dns_failure_is_only_a_warning(provisioner, db_session, dns) -> None:
    dns.result = RemoteResult(success=False, kind="transport", error="connect timeout", category="retryable")

    result = provisioner.provision(REQUEST)

    assert result.website.dns_created is False
    assert db_session.exec(select(WebsiteORM)).one().dns_verified is False
    assert _activity(db_session)[-1].details_json["dnsCreated"] is False


def test_database_failure_yields_null_database(provisioner, db_session, hestia) -> None:
    hestia.fail("create_database")

    result = provisioner.provision({**REQUEST, "needDatabase": True})

    assert result.database is None
    assert db_session.exec(select(DatabaseORM)).all() == []


def test_persistence_failure_reverts_the_account(provisioner, db_session, hestia, dns, monkeypatch) -> None:
    original_commit = db_session.commit
    calls = {"n": 0}

    def failing_first_commit():
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("INSERT INTO customer", {}, Exception("database is locked"))
        return original_commit()

    monkeypatch.setattr(db_session, "commit", failing_first_commit)

    with pytest.raises(PersistenceException):
        provisioner.provision(REQUEST)

    username = hestia.called("create_user")[0]["username"]
    assert hestia.called("delete_user") == [{"username": username}]
    assert db_session.exec(select(CustomerORM)).all() == []
    details = _activity(db_session)[-1].details_json
    assert details["orphanedDnsRecord"] == dns.records[0]["name"] + ".lumicloude.my.id"


def test_provisioning_is_not_idempotent(db_session, hestia, dns, settings) -> None:
    provisioner = CustomerProvisioner(session=db_session, hestia=hestia, dns=dns, settings=settings)

    first = provisioner.provision(REQUEST)
    second = provisioner.provision(REQUEST)

    assert first.customer.id != second.customer.id
    assert first.credentials.hestia_username != second.credentials.hestia_username
    assert first.customer.subdomain != second.customer.subdomain
    assert len(db_session.exec(select(CustomerORM)).all()) == 2


def test_seeded_rng_gives_reproducible_credentials(db_session, hestia, dns, settings) -> None:
    results = []
    for _ in range(2):
        provisioner = CustomerProvisioner(
            session=db_session, hestia=hestia, dns=dns, settings=settings, rng=random.Random(99)
        )
        index = len(results)
        results.append(provisioner.provision({"name": f"Jane {index}", "email": f"jane{index}@example.com"}))

    assert results[0].credentials.hestia_password == results[1].credentials.hestia_password


def test_dns_client_error_is_only_a_warning(provisioner, db_session, hestia, dns) -> None:
    dns.error = ConfigurationException("No aaPanel API secret key configured")

    result = provisioner.provision(REQUEST)

    assert result.website.dns_created is False
    assert hestia.called("delete_user") == []
    assert db_session.exec(select(WebsiteORM)).one().dns_verified is False
    assert _activity(db_session)[-1].status == "SUCCESS"


def test_unconfigured_aapanel_keeps_the_account(db_session, hestia, settings) -> None:
    unconfigured_dns = AAPanelClient(
        host="dns.example.net",
        port=9000,
        secret_key="",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"status": True})),
    )
    provisioner = CustomerProvisioner(session=db_session, hestia=hestia, dns=unconfigured_dns, settings=settings)

    result = provisioner.provision({"name": "Acme Co", "email": "a@acme.test"})

    assert result.website.dns_created is False
    assert hestia.user_exists(result.credentials.hestia_username) is True
    assert hestia.called("delete_user") == []


def test_tls_client_error_leaves_ssl_pending(provisioner, db_session, hestia) -> None:
    hestia.raise_on("enable_ssl", RuntimeError("connection reset by peer"))

    result = provisioner.provision(REQUEST)

    assert result.website.status == "SSL_PENDING"
    assert hestia.called("force_ssl") == []
    assert hestia.called("delete_user") == []
    assert db_session.exec(select(WebsiteORM)).one().ssl_enabled is False


def test_database_client_error_yields_null_database(provisioner, db_session, hestia) -> None:
    hestia.raise_on("create_database", RuntimeError("mysql unavailable"))

    result = provisioner.provision({**REQUEST, "needDatabase": True})

    assert result.database is None
    assert hestia.called("delete_user") == []
    assert db_session.exec(select(DatabaseORM)).all() == []


def test_unexpected_host_error_reverts_the_account(provisioner, db_session, hestia, dns) -> None:
    hestia.raise_on("add_web_domain", RuntimeError("server disconnected"))

    with pytest.raises(ProvisioningException, match="server disconnected"):
        provisioner.provision(REQUEST)

    username = hestia.called("create_user")[0]["username"]
    assert hestia.called("delete_user") == [{"username": username}]
    assert hestia.user_exists(username) is False
    assert dns.records == []
    assert db_session.exec(select(CustomerORM)).all() == []
    entry = _activity(db_session)[-1]
    assert entry.status == "FAILED"
    assert entry.details_json["compensations"] == [
        {"action": f"delete HestiaCP user {username}", "succeeded": True, "error": None}
    ]


def test_error_after_persisting_keeps_the_account(provisioner, db_session, hestia, monkeypatch) -> None:
    def broken_next_steps(subdomain, custom_domain):
        raise RuntimeError("template missing")

    monkeypatch.setattr("hostpanel.services.provisioning._next_steps", broken_next_steps)

    with pytest.raises(ProvisioningException):
        provisioner.provision(REQUEST)

    assert hestia.called("delete_user") == []
    assert len(db_session.exec(select(CustomerORM)).all()) == 1
    assert _activity(db_session)[-1].status == "FAILED"
