"""TOML configuration loader.

Loads the client configuration from a TOML file, defaulting to the
packaged ``streamchat/config/defaults.toml``. The API URL can be
overridden with the STREAMCHAT_API_URL environment variable.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from streamchat.schemas.config import ChatConfig, Labels, ModelConfig
from streamchat.schemas.request import HttpOptions, RequestOverrides

logger = logging.getLogger(__name__)

# Default config directory relative to the streamchat package
_CONFIG_DIR = Path(__file__).parent / "config"

API_URL_ENV = "STREAMCHAT_API_URL"
DEFAULT_API_URL = "http://localhost:3000"


def load_chat_config(config_path: Path | None = None) -> ChatConfig:
    """Load the client configuration from a TOML file.

    Args:
        config_path: Path to a TOML file. Defaults to
            streamchat/config/defaults.toml.

    Returns:
        ChatConfig with values from the file and the environment.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML is malformed or a value is invalid.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Chat config not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    http_section = dict(raw.get("http", {}))
    request_section = raw.get("request", {})
    http_section.setdefault("url", DEFAULT_API_URL)

    env_url = os.environ.get(API_URL_ENV)
    if env_url:
        logger.debug("Using API URL from %s", API_URL_ENV)
        http_section["url"] = env_url

    try:
        return ChatConfig(
            http=HttpOptions(**http_section),
            interaction_model=request_section.get("interaction_model", "chat"),
            overrides=RequestOverrides(**request_section.get("overrides", {})),
            labels=Labels(**raw.get("labels", {})),
            model=ModelConfig(**raw["model"]) if raw.get("model") else None,
        )
    except ValidationError as e:
        raise ValueError(f"Invalid chat config in {path}: {e}") from e
