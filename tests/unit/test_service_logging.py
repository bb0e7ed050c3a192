"""Logging and Redis client setup."""

import logging

import pytest

from techrec import redis_client
from techrec.config import Settings
from techrec.middleware.logging import HANDLER_NAME, service_context, setup_logging
from techrec.middleware.request_id import resolve_request_id


def test_service_fields_added():
    settings = Settings(environment="staging")
    event = service_context(settings)(None, "info", {"event": "xp_awarded"})
    assert event["service"] == "techrec-gamification"
    assert event["version"] == settings.app_version
    assert event["env"] == "staging"


def test_service_fields_do_not_override_event():
    event = service_context(Settings())(None, "info", {"event": "x", "service": "worker"})
    assert event["service"] == "worker"


def test_setup_twice_keeps_one_handler():
    settings = Settings(log_format="console")
    setup_logging(settings)
    setup_logging(settings)
    handlers = [h for h in logging.getLogger("techrec").handlers if h.get_name() == HANDLER_NAME]
    assert len(handlers) == 1


def test_sql_logging_needs_debug():
    setup_logging(Settings(log_sql=True, debug=False))
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    setup_logging(Settings(log_sql=True, debug=True))
    assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
    setup_logging(Settings())


@pytest.mark.parametrize("incoming", ["gw-7f3a.1", "0f8e2c1b9a7d4e6f8a0b1c2d3e4f5a6b"])
def test_well_formed_request_id_reused(incoming):
    assert resolve_request_id(incoming) == incoming


@pytest.mark.parametrize("incoming", [None, "", "a b", "x" * 65, "id\nforged"])
def test_bad_request_id_replaced(incoming):
    request_id = resolve_request_id(incoming)
    assert request_id != incoming
    assert len(request_id) == 32


@pytest.mark.asyncio
async def test_redis_client_uses_settings():
    settings = Settings(redis_max_connections=7, redis_health_check_interval=15)
    await redis_client.init_redis(settings)
    try:
        client = redis_client.get_redis()
        assert client.connection_pool.max_connections == 7
        assert client.connection_pool.connection_kwargs["health_check_interval"] == 15
        assert client.connection_pool.connection_kwargs["client_name"] == "techrec-gamification"
    finally:
        await redis_client.close_redis()
    assert redis_client.get_redis_or_none() is None
