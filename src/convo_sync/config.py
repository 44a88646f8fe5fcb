"""
Client configuration — endpoints, polling and timeout settings.

Sources, lowest to highest priority: field defaults, ~/.convo/config.json,
CONVO_<FIELD> environment variables, keyword arguments.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".convo"
CONFIG_FILE = CONFIG_DIR / "config.json"
ENV_PREFIX = "CONVO_"

DEFAULT_AUTH_URL = "https://local.auth.nhost.run/v1"
DEFAULT_GRAPHQL_URL = "https://local.graphql.nhost.run/v1"


def load_config_file(path: Path) -> dict[str, Any]:
    """Raw values from the config file; missing or unreadable reads as empty."""
    try:
        data = json.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def save_config_file(values: dict[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(values, indent=2))
    return path


class ConfigFileSource(PydanticBaseSettingsSource):
    """Settings source backed by the JSON config file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path):
        super().__init__(settings_cls)
        self._values = load_config_file(path)

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._values.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {name: value for name, value in self._values.items() if name in self.settings_cls.model_fields}


class ClientConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    auth_url: str = DEFAULT_AUTH_URL
    graphql_url: str = DEFAULT_GRAPHQL_URL
    webhook_url: str = ""
    poll_interval_s: float = 2.0
    webhook_timeout_s: float = 30.0
    http_timeout_s: float = 30.0
    refresh_margin_s: float = 300.0
    session_file: str = str(CONFIG_DIR / "session.json")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # CONFIG_FILE is resolved on every instantiation
        return init_settings, env_settings, ConfigFileSource(settings_cls, CONFIG_FILE)
