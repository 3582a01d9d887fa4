"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


class AssistantConfig(BaseModel):
    history_limit: int = Field(default=20, ge=1)
    confidence_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    collaborator_timeout: float = Field(default=12.0, gt=0)
    default_platform: str = "amazon"
    default_payment_method: str = "COD"  # "COD" | "CARD" | "UPI"


class PlatformConfig(BaseModel):
    name: str
    currency: str = "USD"


def _default_platforms() -> dict[str, PlatformConfig]:
    return {
        "amazon": PlatformConfig(name="Amazon", currency="USD"),
        "flipkart": PlatformConfig(name="Flipkart", currency="INR"),
    }


class CommerceConfig(BaseModel):
    platforms: dict[str, PlatformConfig] = Field(default_factory=_default_platforms)
    simulated_delay: float = 0.0  # seconds


class MessagingConfig(BaseModel):
    provider: str = "whatsapp"
    simulated_delay: float = 0.0


class LocationConfig(BaseModel):
    latitude: float = 37.7749
    longitude: float = -122.4194
    accuracy: float = 10.0


class SOSConfig(BaseModel):
    message: str = "EMERGENCY: {name} has triggered an SOS alert."
    all_clear_message: str = (
        "ALL CLEAR: I'm safe now. The emergency situation has been resolved."
    )
    location_sharing: bool = True
    emergency_number: str = "911"
    update_interval_seconds: int = 60
    timezone: str = "UTC"

    @field_validator("update_interval_seconds")
    @classmethod
    def _min_interval(cls, value: int) -> int:
        if value < 10:
            raise ValueError("update_interval_seconds must be at least 10")
        return value


class ContactSeed(BaseModel):
    name: str
    phone: str
    priority: Optional[int] = None


class UserSeed(BaseModel):
    name: str = "User"
    addresses: dict[str, str] = Field(default_factory=dict)  # "home" | "work" -> text
    emergency_contacts: list[ContactSeed] = Field(default_factory=list)


class StorageConfig(BaseModel):
    db_path: str = "./data/zynthra.db"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"
    data_dir: str = "./data"
    storage: StorageConfig = Field(default_factory=StorageConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    commerce: CommerceConfig = Field(default_factory=CommerceConfig)
    messaging: MessagingConfig = Field(default_factory=MessagingConfig)
    location: LocationConfig = Field(default_factory=LocationConfig)
    sos: SOSConfig = Field(default_factory=SOSConfig)
    users: dict[str, UserSeed] = Field(default_factory=dict)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced as ${data_dir} elsewhere in the file
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(str(raw_data.get("data_dir", "./data")))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
