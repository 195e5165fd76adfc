from __future__ import annotations

from functools import lru_cache

from s3broker.services.broker import ServiceBroker, build_broker
from s3broker.settings import BrokerSettings


@lru_cache(maxsize=1)
def get_settings() -> BrokerSettings:
    return BrokerSettings.from_env()


@lru_cache(maxsize=1)
def get_broker() -> ServiceBroker:
    return build_broker(get_settings())
