"""Unit tests for site configuration."""

import json

import pytest

from learnmap import config


@pytest.fixture(autouse=True)
def site_config(tmp_path, monkeypatch):
	"""Isolate every test from the real site config and environment."""
	path = tmp_path / "site_config.json"
	monkeypatch.setenv("LEARNMAP_SITE_CONFIG", str(path))
	for key in list(config.DEFAULTS) + ["learnmap_redis", "redis_cache"]:
		monkeypatch.delenv(f"LEARNMAP_{key.upper()}", raising=False)
	config.clear_conf_cache()
	yield path
	config.clear_conf_cache()


def test_defaults_without_file():
	"""Test that defaults apply when no site config exists."""
	conf = config.get_conf()

	assert conf["default_hearts"] == 5
	assert conf["reconcile_on_load"] is True
	assert conf["progress_ttl"] == 0


def test_file_values_override_defaults(site_config):
	"""Test that site config values win over defaults."""
	site_config.write_text(json.dumps({"default_hearts": 3, "extra": "x"}), encoding="utf-8")

	conf = config.get_conf()

	assert conf["default_hearts"] == 3
	assert conf["extra"] == "x"


def test_env_overrides_are_coerced(site_config, monkeypatch):
	"""Test that environment overrides keep the type of the setting."""
	site_config.write_text(json.dumps({"default_hearts": 3}), encoding="utf-8")
	monkeypatch.setenv("LEARNMAP_DEFAULT_HEARTS", "7")
	monkeypatch.setenv("LEARNMAP_RECONCILE_ON_LOAD", "false")

	conf = config.get_conf()

	assert conf["default_hearts"] == 7
	assert conf["reconcile_on_load"] is False


def test_conf_is_cached_until_cleared(monkeypatch):
	"""Test that configuration is read once until the cache is cleared."""
	first = config.get_conf()
	monkeypatch.setenv("LEARNMAP_DEFAULT_HEARTS", "9")

	assert config.get_conf() is first

	config.clear_conf_cache()
	assert config.get_conf()["default_hearts"] == 9


def test_redis_url_priority():
	"""Test the learnmap_redis -> redis_cache -> localhost chain."""
	assert config.get_redis_url({"learnmap_redis": "redis://a:1", "redis_cache": "redis://b:2"}) == "redis://a:1"
	assert config.get_redis_url({"redis_cache": "redis://b:2"}) == "redis://b:2"
	assert config.get_redis_url({}) == config.DEFAULT_REDIS_URL


def test_redis_url_from_environment(monkeypatch):
	"""Test that the redis URL can come from the environment."""
	monkeypatch.setenv("LEARNMAP_LEARNMAP_REDIS", "redis://env:6379")

	assert config.get_redis_url() == "redis://env:6379"
