"""Local credential storage and API endpoint resolution."""

import json
import os
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from devic_cli.client import DEFAULT_BASE_URL


class CliConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(default=None, alias="apiKey")
    base_url: Optional[str] = Field(default=None, alias="baseUrl")


def get_config_dir() -> Path:
    """Get the devic config directory (XDG-style, overridable)."""
    if env_dir := os.environ.get("DEVIC_CONFIG_DIR"):
        return Path(env_dir)
    return Path.home() / ".config" / "devic"


def get_config_file() -> Path:
    return get_config_dir() / "config.json"


def _read_config_file() -> CliConfig:
    path = get_config_file()
    if not path.exists():
        return CliConfig()
    try:
        return CliConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return CliConfig()


def load_config(base_url_override: Optional[str] = None) -> CliConfig:
    """Resolve credentials: env vars win over the stored file."""
    stored = _read_config_file()
    return CliConfig(
        api_key=os.environ.get("DEVIC_API_KEY") or stored.api_key,
        base_url=base_url_override
        or os.environ.get("DEVIC_BASE_URL")
        or stored.base_url
        or DEFAULT_BASE_URL,
    )


def save_config(**fields: Optional[str]) -> Path:
    """Merge the given fields into the stored config and return its path."""
    stored = _read_config_file()
    updates = {k: v for k, v in fields.items() if v is not None}
    merged = stored.model_copy(update=updates)

    path = get_config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = merged.model_dump(by_alias=True, exclude_none=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


def delete_config() -> bool:
    """Remove stored credentials. Returns False if nothing was stored."""
    path = get_config_file()
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
