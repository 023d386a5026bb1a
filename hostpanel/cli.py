from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Iterator

import typer
import yaml
from fastapi.encoders import jsonable_encoder

from hostpanel.config import load_settings
from hostpanel.db import session_scope
from hostpanel.logging_config import configure_logging
from hostpanel.schemas import CustomerUpdate, ProvisioningResponse, WebsiteCreate, parse_payload
from hostpanel.services import (
    activity as activity_service,
    billing as billing_service,
    customers as customer_service,
    dashboard as dashboard_service,
    packages as package_service,
    websites as website_service,
)
from hostpanel.services.aapanel_adapter import AAPanelClient
from hostpanel.services.errors import HostPanelException
from hostpanel.services.hestia_adapter import HestiaClient
from hostpanel.services.provisioning import CustomerProvisioner

configure_logging()
logger = logging.getLogger(__name__)
app = typer.Typer(help="HostPanel CLI", pretty_exceptions_show_locals=False)


@contextmanager
def _remote_clients() -> Iterator[tuple[HestiaClient, AAPanelClient]]:
    settings = load_settings()
    with HestiaClient.from_settings(settings) as hestia, AAPanelClient.from_settings(settings) as dns:
        yield hestia, dns


def _exit_for_domain_error(exc: HostPanelException) -> None:
    logger.warning("CLI command failed with domain error: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    for detail in getattr(exc, "details", None) or []:
        typer.echo(f"  {'.'.join(str(part) for part in detail.get('loc', []))}: {detail.get('msg')}", err=True)
    raise typer.Exit(code=1)


def _echo_yaml_entity(entity: object) -> None:
    encoded = jsonable_encoder(entity)
    typer.echo(yaml.safe_dump(encoded, sort_keys=False), nl=False)


@app.command("create-customer")
def create_customer(
    name: str = typer.Option(..., "--name"),
    email: str = typer.Option(..., "--email"),
    phone: str | None = typer.Option(None, "--phone"),
    company: str | None = typer.Option(None, "--company"),
    custom_domain: str | None = typer.Option(None, "--custom-domain"),
    package_id: str = typer.Option("starter", "--package"),
    php_version: str = typer.Option("8.1", "--php-version"),
    need_database: bool = typer.Option(False, "--need-database"),
) -> None:
    payload = {
        "name": name,
        "email": email,
        "phone": phone,
        "company": company,
        "customDomain": custom_domain,
        "packageId": package_id,
        "phpVersion": php_version,
        "needDatabase": need_database,
    }
    with session_scope() as session, _remote_clients() as (hestia, dns):
        provisioner = CustomerProvisioner(session=session, hestia=hestia, dns=dns, settings=load_settings())
        try:
            result = provisioner.provision(payload)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity(ProvisioningResponse(success=True, data=result))


@app.command("list-customers")
def list_customers(status: str | None = typer.Option(None, "--status")) -> None:
    with session_scope() as session:
        _echo_yaml_entity(customer_service.list_customers(session, status=status))


@app.command("get-customer")
def get_customer(customer_id: int) -> None:
    with session_scope() as session:
        try:
            customer = customer_service.get_customer(session, customer_id=customer_id)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity(customer)


@app.command("update-customer")
def update_customer(
    customer_id: int,
    name: str | None = typer.Option(None, "--name"),
    email: str | None = typer.Option(None, "--email"),
    phone: str | None = typer.Option(None, "--phone"),
    company: str | None = typer.Option(None, "--company"),
    package_id: str | None = typer.Option(None, "--package"),
    billing_cycle: str | None = typer.Option(None, "--billing-cycle"),
) -> None:
    fields = {
        "name": name,
        "email": email,
        "phone": phone,
        "company": company,
        "packageId": package_id,
        "billingCycle": billing_cycle,
    }
    with session_scope() as session:
        try:
            update = parse_payload(CustomerUpdate, {key: value for key, value in fields.items() if value is not None})
            customer = customer_service.update_customer(session, customer_id=customer_id, update=update)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity(customer)


@app.command("delete-customer")
def delete_customer(customer_id: int) -> None:
    with session_scope() as session, _remote_clients() as (hestia, _dns):
        try:
            customer_service.delete_customer(session, hestia, customer_id=customer_id)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity({"deleted": customer_id})


@app.command("suspend-customer")
def suspend_customer(customer_id: int) -> None:
    with session_scope() as session, _remote_clients() as (hestia, _dns):
        try:
            customer = customer_service.suspend_customer(session, hestia, customer_id=customer_id)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity(customer)


@app.command("unsuspend-customer")
def unsuspend_customer(customer_id: int) -> None:
    with session_scope() as session, _remote_clients() as (hestia, _dns):
        try:
            customer = customer_service.unsuspend_customer(session, hestia, customer_id=customer_id)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity(customer)


@app.command("extend-billing")
def extend_billing(customer_id: int, months: int = typer.Option(1, "--months")) -> None:
    with session_scope() as session, _remote_clients() as (hestia, _dns):
        try:
            customer = billing_service.extend_billing(session, hestia, customer_id=customer_id, months=months)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity(customer)


@app.command("suspend-expired")
def suspend_expired() -> None:
    with session_scope() as session, _remote_clients() as (hestia, _dns):
        _echo_yaml_entity(billing_service.suspend_expired_customers(session, hestia))


@app.command("create-website")
def create_website(
    customer_id: int,
    name: str = typer.Option(..., "--name"),
    php_version: str = typer.Option("8.1", "--php-version"),
    enable_ssl: bool = typer.Option(True, "--ssl/--no-ssl"),
) -> None:
    payload = {"customerId": customer_id, "name": name, "phpVersion": php_version, "enableSsl": enable_ssl}
    with session_scope() as session, _remote_clients() as (hestia, dns):
        try:
            request = parse_payload(WebsiteCreate, payload)
            website = website_service.create_website(session, hestia, dns, load_settings(), request=request)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity(website)


@app.command("enable-ssl")
def enable_ssl(website_id: int) -> None:
    with session_scope() as session, _remote_clients() as (hestia, _dns):
        try:
            website = website_service.enable_website_ssl(session, hestia, website_id=website_id)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity(website)


@app.command("delete-website")
def delete_website(website_id: int) -> None:
    with session_scope() as session, _remote_clients() as (hestia, _dns):
        try:
            website_service.delete_website(session, hestia, website_id=website_id)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity({"deleted": website_id})


@app.command("dashboard-stats")
def dashboard_stats() -> None:
    with session_scope() as session:
        _echo_yaml_entity(dashboard_service.get_stats(session))


@app.command("list-packages")
def list_packages() -> None:
    with _remote_clients() as (hestia, _dns):
        _echo_yaml_entity(package_service.list_catalog(hestia))


@app.command("list-activity")
def list_activity(
    status: str | None = typer.Option(None, "--status"),
    search: str | None = typer.Option(None, "--search"),
    page: int = typer.Option(1, "--page"),
    limit: int = typer.Option(20, "--limit"),
) -> None:
    with session_scope() as session:
        try:
            activity = activity_service.list_activity(session, status=status, search=search, page=page, limit=limit)
        except HostPanelException as e:
            _exit_for_domain_error(e)
        _echo_yaml_entity(activity)


if __name__ == "__main__":
    app()
