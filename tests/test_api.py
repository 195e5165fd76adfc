from __future__ import annotations

from dataclasses import replace

from s3broker.dependencies import get_settings
from s3broker.main import app
from s3broker.services.errors import DownstreamUnavailableException
from s3broker.services.plan import BASIC_PLAN_ID, SHARED_PLAN_ID, SINGLE_BUCKET_PLAN_ID


def _provision(client, instance_id: str = "i1", plan_id: str = BASIC_PLAN_ID):
    return client.put(
        f"/v2/service_instances/{instance_id}",
        json={"service_id": "s3", "plan_id": plan_id, "organization_guid": "org", "space_guid": "space"},
    )


def test_catalog(client) -> None:
    response = client.get("/v2/catalog")
    assert response.status_code == 200
    plans = response.json()["services"][0]["plans"]
    assert [plan["id"] for plan in plans] == [BASIC_PLAN_ID, SHARED_PLAN_ID, SINGLE_BUCKET_PLAN_ID]


def test_provision_and_get_instance(client) -> None:
    assert _provision(client).status_code == 201

    response = client.get("/v2/service_instances/i1")
    assert response.status_code == 200
    assert response.json() == {
        "service_id": "s3",
        "plan_id": BASIC_PLAN_ID,
        "organization_guid": "org",
        "space_guid": "space",
    }


def test_provision_twice_conflicts(client) -> None:
    _provision(client)
    response = _provision(client)
    assert response.status_code == 409
    assert "already exists" in response.json()["description"]


def test_shared_provision_twice_conflicts(client) -> None:
    assert _provision(client, plan_id=SHARED_PLAN_ID).status_code == 201
    response = _provision(client, plan_id=SHARED_PLAN_ID)
    assert response.status_code == 409
    assert "already exists" in response.json()["description"]


def test_unknown_plan_is_bad_request(client) -> None:
    response = _provision(client, plan_id="s3-gold-plan")
    assert response.status_code == 400
    assert response.json() == {"description": "Unsupported plan: 's3-gold-plan'"}


def test_invalid_bucket_name_is_bad_request(client) -> None:
    assert _provision(client, instance_id="Bad_Name").status_code == 400


def test_get_missing_instance_is_not_found(client) -> None:
    assert client.get("/v2/service_instances/missing").status_code == 404


def test_delete_missing_instance_is_gone(client) -> None:
    response = client.delete("/v2/service_instances/missing", params={"plan_id": BASIC_PLAN_ID})
    assert response.status_code == 410


def test_bind_and_unbind_shared(client) -> None:
    _provision(client, plan_id=SHARED_PLAN_ID)

    response = client.put(
        "/v2/service_instances/i1/service_bindings/b1",
        json={"service_id": "s3", "plan_id": SHARED_PLAN_ID, "app_guid": "app"},
    )
    assert response.status_code == 201
    credentials = response.json()["credentials"]
    assert credentials["bucket"] == "cf-test-shared"
    assert credentials["key_suffix"] == "_i1"
    assert credentials["encryption_keys"][0]["algorithm"] == "DESede"
    assert set(credentials["encryption_keys"][0]) == {"keyID", "algorithm", "key"}

    response = client.delete(
        "/v2/service_instances/i1/service_bindings/b1", params={"plan_id": SHARED_PLAN_ID}
    )
    assert response.status_code == 200
    assert response.json() == {}


def test_basic_credentials_omit_suffix_and_keys(client) -> None:
    _provision(client)
    response = client.put(
        "/v2/service_instances/i1/service_bindings/b1",
        json={"plan_id": BASIC_PLAN_ID},
    )
    assert set(response.json()["credentials"]) == {"bucket", "username", "access_key_id", "secret_access_key"}


def test_unbind_missing_binding_is_gone(client) -> None:
    _provision(client)
    response = client.delete(
        "/v2/service_instances/i1/service_bindings/nope", params={"plan_id": BASIC_PLAN_ID}
    )
    assert response.status_code == 410


def test_deprovision(client) -> None:
    _provision(client)
    response = client.delete("/v2/service_instances/i1", params={"plan_id": BASIC_PLAN_ID})
    assert response.status_code == 200
    assert client.get("/v2/service_instances/i1").status_code == 404


def test_list_instances_reports_unlisted_plans(client) -> None:
    _provision(client)
    response = client.get("/v2/service_instances")
    assert response.status_code == 200
    body = response.json()
    assert [instance["service_instance_id"] for instance in body["instances"]] == ["i1"]
    assert body["unlisted_plans"] == [SHARED_PLAN_ID, SINGLE_BUCKET_PLAN_ID]


def test_downstream_unavailable_is_service_unavailable(client, object_store) -> None:
    def throttled(name: str):
        raise DownstreamUnavailableException("slow down", operation="head_bucket", code="SlowDown", category="retryable")

    object_store.container_exists = throttled
    response = client.put(
        "/v2/service_instances/i1/service_bindings/b1", json={"plan_id": BASIC_PLAN_ID}
    )
    assert response.status_code == 503


def test_basic_auth_when_password_configured(client, settings) -> None:
    app.dependency_overrides[get_settings] = lambda: replace(
        settings, broker_username="broker", broker_password="s3cret"
    )

    assert client.get("/v2/catalog").status_code == 401
    assert client.get("/v2/catalog", auth=("broker", "wrong")).status_code == 401
    assert client.get("/v2/catalog", auth=("broker", "s3cret")).status_code == 200
