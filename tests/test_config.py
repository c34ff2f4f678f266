from __future__ import annotations

import importlib

import pytest

import config


@pytest.fixture(autouse=True)
def _restore_config():
    yield
    importlib.reload(config)


def test_feed_timeout_from_env(monkeypatch):
    monkeypatch.setenv("FEED_TIMEOUT_SECONDS", "30")
    assert importlib.reload(config).Config.FEED_TIMEOUT_SECONDS == 30

    monkeypatch.setenv("FEED_TIMEOUT_SECONDS", "-3")
    assert importlib.reload(config).Config.FEED_TIMEOUT_SECONDS == 10

    monkeypatch.delenv("FEED_TIMEOUT_SECONDS", raising=False)
    assert importlib.reload(config).Config.FEED_TIMEOUT_SECONDS == 10


def test_sync_deadline_is_optional(monkeypatch):
    monkeypatch.delenv("SYNC_DEADLINE_SECONDS", raising=False)
    assert importlib.reload(config).Config.SYNC_DEADLINE_SECONDS is None

    monkeypatch.setenv("SYNC_DEADLINE_SECONDS", "4.5")
    assert importlib.reload(config).Config.SYNC_DEADLINE_SECONDS == 4.5

    monkeypatch.setenv("SYNC_DEADLINE_SECONDS", "never")
    assert importlib.reload(config).Config.SYNC_DEADLINE_SECONDS is None


def test_store_collection_default(monkeypatch):
    monkeypatch.setenv("STORE_COLLECTION", "")
    assert importlib.reload(config).Config.STORE_COLLECTION == "feed_items"


def test_local_environment_defaults_to_http_trigger(monkeypatch):
    monkeypatch.delenv("SYNC_TRIGGERS", raising=False)
    monkeypatch.setenv("APP_ENV", "local")
    assert importlib.reload(config).Config.SYNC_TRIGGERS == ("http",)


def test_other_environments_default_to_timer_trigger(monkeypatch):
    monkeypatch.delenv("SYNC_TRIGGERS", raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)
    assert importlib.reload(config).Config.SYNC_TRIGGERS == ("timer",)


def test_explicit_trigger_list(monkeypatch):
    monkeypatch.setenv("APP_ENV", "local")
    monkeypatch.setenv("SYNC_TRIGGERS", "timer, HTTP, carrier-pigeon")
    assert importlib.reload(config).Config.SYNC_TRIGGERS == ("timer", "http")


def test_bool_env_helper(monkeypatch):
    monkeypatch.setenv("FEEDSYNC_FLAG", "yes")
    assert config._get_bool_env("FEEDSYNC_FLAG") is True
    monkeypatch.setenv("FEEDSYNC_FLAG", "off")
    assert config._get_bool_env("FEEDSYNC_FLAG", True) is False
    monkeypatch.setenv("FEEDSYNC_FLAG", "maybe")
    assert config._get_bool_env("FEEDSYNC_FLAG", True) is True
