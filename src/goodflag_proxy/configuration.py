from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import ConfigKeyError
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError
from .models import Settings

DEFAULTS_PATH = Path(__file__).resolve().with_name("defaults.yaml")
CONFIG_PATH_ENV = "GOODFLAG_PROXY_CONFIG"

# Settings without a usable default, keyed by the environment variable that feeds them
REQUIRED_SETTINGS: Dict[str, str] = {
    "goodflag_base_url": "GOODFLAG_BASE_URL",
    "goodflag_api_key": "GOODFLAG_API_KEY",
    "goodflag_user_id": "GOODFLAG_USER_ID",
    "goodflag_signature_profile_id": "GOODFLAG_SIGNATURE_PROFILE_ID",
}


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    if not DEFAULTS_PATH.exists():
        raise FileNotFoundError(f"Default config not found at {DEFAULTS_PATH}")
    return OmegaConf.load(DEFAULTS_PATH)


def make_runtime_config(
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[Path] = None,
) -> DictConfig:
    base = OmegaConf.create(OmegaConf.to_container(_load_default_config(), resolve=False))
    OmegaConf.set_struct(base, True)

    layers = [base]
    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        layers.append(OmegaConf.load(config_path))
    if overrides:
        layers.append(OmegaConf.create(overrides))
    try:
        return DictConfig(OmegaConf.merge(*layers))
    except ConfigKeyError as exc:
        raise ConfigurationError(f"Unknown configuration key: {exc}") from exc


def load_settings(
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[Path] = None,
) -> Settings:
    """
    Build validated settings from defaults.yaml, an optional YAML file and
    explicit overrides, in that order of precedence (last wins).

    Raises:
        ConfigurationError: If a required setting is missing or a value
            does not validate.
    """
    if config_path is None and os.environ.get(CONFIG_PATH_ENV):
        config_path = Path(os.environ[CONFIG_PATH_ENV])

    runtime_config = make_runtime_config(overrides, config_path)
    container: Dict[str, Any] = OmegaConf.to_container(runtime_config, resolve=True)  # type: ignore[assignment]

    for key, env_name in REQUIRED_SETTINGS.items():
        if not container.get(key):
            raise ConfigurationError(f"Missing required environment variable: {env_name}")
    if not container.get("goodflag_consent_page_id"):
        container["goodflag_consent_page_id"] = None

    try:
        return Settings.model_validate(container)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    return load_settings()
