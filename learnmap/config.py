# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""
Site configuration for Learnmap

Configuration lives in a site_config.json file, the same layout a bench site
uses. The file path comes from the LEARNMAP_SITE_CONFIG environment variable
and individual keys can be overridden with LEARNMAP_<KEY> variables.

Redis URL priority:
1. 'learnmap_redis' key (specific for the progress store)
2. 'redis_cache' key (standard site cache)
3. Fallback to localhost
"""

import json
import logging
import os
from functools import lru_cache
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SITE_CONFIG_ENV = "LEARNMAP_SITE_CONFIG"
DEFAULT_SITE_CONFIG_PATH = os.path.join("sites", "site_config.json")
DEFAULT_REDIS_URL = "redis://localhost:13000"

DEFAULTS = {
	"default_hearts": 5,
	"reconcile_on_load": True,
	"progress_ttl": 0,
	"content_path": os.path.join("sites", "learnmap_content"),
}


def get_site_config_path() -> str:
	"""Get the site config path from the environment or the default location."""
	return os.environ.get(SITE_CONFIG_ENV, DEFAULT_SITE_CONFIG_PATH)


@lru_cache(maxsize=1)
def get_conf() -> Dict[str, Any]:
	"""Load site configuration merged over defaults.

	Returns:
		Dictionary of configuration values
	"""
	conf = dict(DEFAULTS)
	path = get_site_config_path()

	if os.path.exists(path):
		with open(path, "r", encoding="utf-8") as f:
			conf.update(json.load(f))
		logger.debug(f"Loaded site config from {path}")
	else:
		logger.debug(f"No site config at {path}, using defaults")

	for key in list(conf) + ["learnmap_redis", "redis_cache"]:
		env_value = os.environ.get(f"LEARNMAP_{key.upper()}")
		if env_value is not None:
			conf[key] = _coerce_env_value(env_value, conf.get(key))

	return conf


def clear_conf_cache():
	"""Forget the cached configuration so the next read reloads it."""
	get_conf.cache_clear()


def get_redis_url(conf: Optional[Dict[str, Any]] = None) -> str:
	conf = conf if conf is not None else get_conf()

	redis_url = conf.get("learnmap_redis")

	if not redis_url:
		redis_url = conf.get("redis_cache")

	if not redis_url:
		redis_url = DEFAULT_REDIS_URL

	return redis_url


def _coerce_env_value(value: str, current: Any) -> Any:
	"""Convert an environment string to the type of the existing setting."""
	if isinstance(current, bool):
		return value.strip().lower() in ("1", "true", "yes", "on")
	if isinstance(current, int):
		return int(value)
	return value
