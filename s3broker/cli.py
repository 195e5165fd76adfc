from __future__ import annotations

import logging
from typing import Optional

import typer
import uvicorn
import yaml
from fastapi.encoders import jsonable_encoder

from s3broker.dependencies import get_broker
from s3broker.logging_config import configure_logging
from s3broker.models import ServiceInstanceBinding
from s3broker.services.errors import BrokerException

configure_logging()
logger = logging.getLogger(__name__)
app = typer.Typer(help="S3 service broker CLI", pretty_exceptions_show_locals=False)


def _exit_for_domain_error(exc: BrokerException) -> None:
    logger.warning("CLI command failed with domain error: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


def _echo_yaml_entity(entity: object) -> None:
    encoded = jsonable_encoder(entity)
    typer.echo(yaml.safe_dump(encoded, sort_keys=False), nl=False)


def _binding_payload(binding: ServiceInstanceBinding) -> dict:
    payload: dict = {
        "binding_id": binding.binding_id,
        "service_instance_id": binding.service_instance_id,
    }
    if binding.app_guid is not None:
        payload["app_guid"] = binding.app_guid
    if binding.credentials is not None:
        payload["credentials"] = binding.credentials.to_payload()
    return payload


@app.command("catalog")
def catalog() -> None:
    _echo_yaml_entity(get_broker().catalog().to_catalog())


@app.command("provision")
def provision(
    instance_id: str,
    plan_id: str = typer.Option(..., "--plan-id", help="Plan to provision (e.g. 's3-basic-plan')."),
    service_id: Optional[str] = typer.Option(None, "--service-id", help="Service definition id."),
    organization_guid: Optional[str] = typer.Option(None, "--organization-guid"),
    space_guid: Optional[str] = typer.Option(None, "--space-guid"),
) -> None:
    try:
        instance = get_broker().create_instance(
            instance_id,
            plan_id=plan_id,
            service_definition_id=service_id,
            organization_guid=organization_guid,
            space_guid=space_guid,
        )
    except BrokerException as e:
        _exit_for_domain_error(e)
    _echo_yaml_entity(instance)


@app.command("deprovision")
def deprovision(
    instance_id: str,
    plan_id: str = typer.Option(..., "--plan-id"),
) -> None:
    try:
        instance = get_broker().delete_instance(instance_id, plan_id=plan_id)
    except BrokerException as e:
        _exit_for_domain_error(e)
    _echo_yaml_entity(instance)


@app.command("bind")
def bind(
    instance_id: str,
    binding_id: str,
    plan_id: str = typer.Option(..., "--plan-id"),
    app_guid: Optional[str] = typer.Option(None, "--app-guid"),
) -> None:
    try:
        binding = get_broker().create_binding(binding_id, instance_id, plan_id=plan_id, app_guid=app_guid)
    except BrokerException as e:
        _exit_for_domain_error(e)
    _echo_yaml_entity(_binding_payload(binding))


@app.command("unbind")
def unbind(
    instance_id: str,
    binding_id: str,
    plan_id: str = typer.Option(..., "--plan-id"),
) -> None:
    try:
        binding = get_broker().delete_binding(binding_id, instance_id, plan_id=plan_id)
    except BrokerException as e:
        _exit_for_domain_error(e)
    _echo_yaml_entity(_binding_payload(binding))


@app.command("get-instance")
def get_instance(instance_id: str) -> None:
    try:
        instance = get_broker().get_instance(instance_id)
    except BrokerException as e:
        _exit_for_domain_error(e)
    if instance is None:
        typer.echo(f"Error: Service instance '{instance_id}' not found", err=True)
        raise typer.Exit(code=1)
    _echo_yaml_entity(instance)


@app.command("list-instances")
def list_instances() -> None:
    try:
        listing = get_broker().list_all_instances()
    except BrokerException as e:
        _exit_for_domain_error(e)
    _echo_yaml_entity(listing)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int = typer.Option(8080, "--port"),
) -> None:
    """Run the broker HTTP API."""
    uvicorn.run("s3broker.main:app", host=host, port=port, log_level="info")


if __name__ == "__main__":
    app()
