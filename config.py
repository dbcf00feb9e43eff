# config.py
"""
This module defines the configuration for the weather app deployment.

Settings come either from the Pulumi stack configuration or from a local
YAML file with the same camelCase keys. Both paths produce the same frozen
DeploymentConfig, which is passed explicitly to the resource builder.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

import pulumi
import yaml

REQUIRED_KEYS = [
    "appPath",
    "prefixName",
    "imageTag",
    "containerPort",
    "publicPort",
    "cpu",
    "memory",
    "weatherApiKey",
]

DEFAULT_CACHE_LOCATION = "westus3"
DEFAULT_IMAGE_PLATFORM = "linux/amd64"

# Feeds the registry name (alphanumeric only) and the DNS label (lowercase).
PREFIX_PATTERN = re.compile(r"^[a-z][a-z0-9]*$")


class ConfigurationError(ValueError):
    """Raised when a required setting is missing or has an invalid value."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


@dataclass(frozen=True)
class DeploymentConfig:
    app_path: str
    prefix_name: str
    image_tag: str
    container_port: int
    public_port: int
    cpu: float
    memory: float
    weather_api_key: pulumi.Input[str] = field(repr=False)
    location: Optional[str] = None
    cache_location: str = DEFAULT_CACHE_LOCATION
    cache_non_ssl_port_enabled: bool = True
    image_platform: str = DEFAULT_IMAGE_PLATFORM
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not PREFIX_PATTERN.match(self.prefix_name):
            raise ConfigurationError(
                f"Invalid prefixName '{self.prefix_name}': expected a lowercase letter "
                "followed by lowercase letters or digits",
                key="prefixName",
            )
        for key, port in (("containerPort", self.container_port), ("publicPort", self.public_port)):
            if not 1 <= port <= 65535:
                raise ConfigurationError(f"Invalid {key} {port}: expected 1-65535", key=key)
        for key, amount in (("cpu", self.cpu), ("memory", self.memory)):
            if amount <= 0:
                raise ConfigurationError(f"Invalid {key} {amount}: must be positive", key=key)
        if not self.app_path:
            raise ConfigurationError("appPath must not be empty", key="appPath")
        if not self.image_tag:
            raise ConfigurationError("imageTag must not be empty", key="imageTag")
        object.__setattr__(self, "tags", _freeze_tags(self.tags))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DeploymentConfig":
        """Build a config from a plain mapping such as a parsed YAML document."""
        missing = [key for key in REQUIRED_KEYS if data.get(key) is None]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration key: {', '.join(missing)}",
                key=missing[0],
            )

        return cls(
            app_path=str(data["appPath"]),
            prefix_name=str(data["prefixName"]),
            image_tag=str(data["imageTag"]),
            container_port=_coerce(data, "containerPort", int),
            public_port=_coerce(data, "publicPort", int),
            cpu=_coerce(data, "cpu", float),
            memory=_coerce(data, "memory", float),
            weather_api_key=str(data["weatherApiKey"]),
            location=data.get("location"),
            cache_location=data.get("cacheLocation") or DEFAULT_CACHE_LOCATION,
            cache_non_ssl_port_enabled=_coerce_bool(data, "cacheNonSslPortEnabled", True),
            image_platform=data.get("imagePlatform") or DEFAULT_IMAGE_PLATFORM,
            tags=data.get("tags") or {},
        )

    @classmethod
    def from_pulumi_config(cls, config: pulumi.Config) -> "DeploymentConfig":
        """Build a config from the stack settings. Missing keys raise ConfigMissingError."""
        non_ssl = config.get_bool("cacheNonSslPortEnabled")
        return cls(
            app_path=config.require("appPath"),
            prefix_name=config.require("prefixName"),
            image_tag=config.require("imageTag"),
            container_port=config.require_int("containerPort"),
            public_port=config.require_int("publicPort"),
            cpu=config.require_float("cpu"),
            memory=config.require_float("memory"),
            weather_api_key=config.require_secret("weatherApiKey"),
            location=config.get("location"),
            cache_location=config.get("cacheLocation") or DEFAULT_CACHE_LOCATION,
            cache_non_ssl_port_enabled=True if non_ssl is None else non_ssl,
            image_platform=config.get("imagePlatform") or DEFAULT_IMAGE_PLATFORM,
            tags=config.get_object("tags") or {},
        )


def _coerce(data: Mapping[str, Any], key: str, kind):
    value = data[key]
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid value for {key}: {value!r}", key=key)
    if kind is int and isinstance(value, float) and not value.is_integer():
        raise ConfigurationError(f"Invalid value for {key}: {value!r}", key=key)
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {key}: {value!r}", key=key) from None


def _freeze_tags(tags: Any) -> Mapping[str, str]:
    """Validate tags and return a read-only copy with string keys and values."""
    if not isinstance(tags, Mapping):
        raise ConfigurationError("tags must be a mapping", key="tags")
    return MappingProxyType({str(k): str(v) for k, v in tags.items()})


def _coerce_bool(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    raise ConfigurationError(f"Invalid value for {key}: {value!r}", key=key)


def load_config(file_path: str) -> DeploymentConfig:
    """Load and validate YAML configuration from the given file path."""
    with open(file_path, "r") as file:
        config_data = yaml.safe_load(file)

    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping")

    return DeploymentConfig.from_mapping(config_data)
