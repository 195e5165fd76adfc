import pytest
from starlette.testclient import TestClient
from typer.testing import CliRunner

from fakes import FakeIdentity, FakeObjectStore
from s3broker.dependencies import get_broker, get_settings
from s3broker.main import app
from s3broker.services.basic_plan import BasicPlan
from s3broker.services.broker import ServiceBroker
from s3broker.services.config_store import ObjectStoreConfigStore
from s3broker.services.plan_iam import PlanIam
from s3broker.services.shared_plan import SharedPlan
from s3broker.services.single_bucket_plan import SingleBucketPlan
from s3broker.settings import BrokerSettings


@pytest.fixture
def settings() -> BrokerSettings:
    return BrokerSettings(
        region_name="us-east-1",
        bucket_name_prefix="cf-test-",
        shared_bucket="cf-test-shared",
        group_path="/cf/",
        group_name_prefix="cf-group-",
        policy_name_prefix="cf-policy-",
        user_path="/cf/",
        user_name_prefix="cf-user-",
    )


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture
def plan_iam(identity, settings) -> PlanIam:
    return PlanIam(identity=identity, settings=settings)


@pytest.fixture
def state_store(object_store, settings) -> ObjectStoreConfigStore:
    return ObjectStoreConfigStore(object_store=object_store, bucket=settings.shared_bucket)


@pytest.fixture
def basic_plan(object_store, plan_iam, settings) -> BasicPlan:
    return BasicPlan(object_store=object_store, iam=plan_iam, bucket_name_prefix=settings.bucket_name_prefix)


@pytest.fixture
def shared_plan(object_store, state_store, plan_iam, settings) -> SharedPlan:
    return SharedPlan(
        object_store=object_store,
        state_store=state_store,
        iam=plan_iam,
        shared_bucket=settings.shared_bucket,
    )


@pytest.fixture
def single_bucket_plan(object_store, state_store, plan_iam, settings) -> SingleBucketPlan:
    return SingleBucketPlan(
        object_store=object_store,
        state_store=state_store,
        iam=plan_iam,
        shared_bucket=settings.shared_bucket,
    )


@pytest.fixture
def broker(basic_plan, shared_plan, single_bucket_plan) -> ServiceBroker:
    return ServiceBroker([basic_plan, shared_plan, single_bucket_plan])


@pytest.fixture
def client(broker, settings):
    app.dependency_overrides[get_broker] = lambda: broker
    app.dependency_overrides[get_settings] = lambda: settings

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture()
def cli_runner(broker, monkeypatch):
    import s3broker.cli as cli

    monkeypatch.setattr(cli, "get_broker", lambda: broker)
    return CliRunner(), cli.app
