"""
Configuration management for multi-cloud price aggregation.

Uses dynaconf for flexible configuration with YAML files and environment overrides.
"""

import logging
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf, Validator

logger = logging.getLogger(__name__)

# Get the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

PROVIDER_NAMES = ("aws", "azure", "gcp")

DEFAULT_REGIONS = {
    "aws": "us-east-1",
    "azure": "eastus",
    "gcp": "us-central1",
}

VALIDATORS = [
    Validator("refresh.interval_seconds", default=21600, gt=0),
    Validator("cache.ttl_seconds", default=21600, gte=0),
    Validator("cache.sweep_interval_seconds", default=120, gt=0),
    Validator("server.host", default="0.0.0.0"),
    Validator("server.port", default=5000, gte=1, lte=65535),
    Validator("http.timeout_seconds", default=30, gt=0),
    Validator("providers.static_fallback", default=True, is_type_of=bool),
    Validator("providers.azure.max_pages", default=5, gte=1),
    Validator("logging.level", default="INFO"),
]


def build_settings(settings_files: list[str] | None = None, **overrides) -> Dynaconf:
    """Create a settings object from YAML files, environment and keyword overrides."""
    if settings_files is None:
        settings_files = [
            str(CONFIG_DIR / "config.yaml"),  # Base configuration
            str(CONFIG_DIR / "config.local.yaml"),  # Local overrides (git-ignored)
        ]

    new_settings = Dynaconf(
        envvar_prefix="CLOUDPRICE",
        settings_files=settings_files,
        environments=False,
        load_dotenv=True,
        merge_enabled=True,
        envvar_separator="__",  # Support nested config via CLOUDPRICE_SERVER__PORT=8080
        validators=VALIDATORS,
    )
    for path, value in overrides.items():
        new_settings.set(path.replace("__", "."), value)
    return new_settings


settings = build_settings()


class PricingConfig:
    """Configuration wrapper for the price aggregation service."""

    def __init__(self, settings_obj: Dynaconf | None = None):
        self.settings = settings_obj if settings_obj is not None else settings
        self._validate_config()

    @classmethod
    def from_overrides(cls, **overrides) -> "PricingConfig":
        """Build a configuration from defaults plus dotted-path overrides, ignoring config files."""
        return cls(build_settings(settings_files=[], **overrides))

    def _validate_config(self):
        """Validate the configuration on initialization, filling in defaults."""
        self.settings.validators.validate()

    @property
    def refresh_interval(self) -> float:
        """Seconds between scheduled aggregation cycles."""
        return float(self.settings.get("refresh.interval_seconds", 21600))

    @property
    def cache_ttl(self) -> float:
        return float(self.settings.get("cache.ttl_seconds", 21600))

    @property
    def sweep_interval(self) -> float:
        return float(self.settings.get("cache.sweep_interval_seconds", 120))

    @property
    def host(self) -> str:
        return str(self.settings.get("server.host", "0.0.0.0"))

    @property
    def port(self) -> int:
        return int(self.settings.get("server.port", 5000))

    @property
    def http_timeout(self) -> float:
        return float(self.settings.get("http.timeout_seconds", 30))

    @property
    def static_fallback(self) -> bool:
        return bool(self.settings.get("providers.static_fallback", True))

    @property
    def log_level(self) -> str:
        return str(self.settings.get("logging.level", "INFO")).upper()

    @property
    def enabled_providers(self) -> list[str]:
        """List of enabled pricing providers."""
        return [name for name in PROVIDER_NAMES if self.is_provider_enabled(name)]

    def is_provider_enabled(self, provider: str) -> bool:
        return bool(self.settings.get(f"providers.{provider}.enabled", True))

    def get_provider_config(self, provider: str) -> dict[str, Any]:
        """Get adapter configuration for a specific provider."""
        section = self.settings.get(f"providers.{provider}", {}) or {}
        provider_config = {key.lower(): section[key] for key in section}
        provider_config.setdefault("region", DEFAULT_REGIONS.get(provider, ""))
        provider_config.setdefault("timeout", self.http_timeout)
        return provider_config

    def override_from_cli(self, cli_args: dict[str, Any]):
        """Override configuration with CLI arguments."""
        # Map CLI arguments to configuration paths
        cli_mapping = {
            "host": "server.host",
            "port": "server.port",
            "refresh_interval": "refresh.interval_seconds",
            "cache_ttl": "cache.ttl_seconds",
            "sweep_interval": "cache.sweep_interval_seconds",
            "aws_region": "providers.aws.region",
            "azure_region": "providers.azure.region",
            "gcp_region": "providers.gcp.region",
        }

        for cli_key, config_path in cli_mapping.items():
            if cli_args.get(cli_key) is not None:
                self.settings.set(config_path, cli_args[cli_key])

        # Re-validate after overrides
        self._validate_config()


_config: PricingConfig | None = None


def get_config() -> PricingConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = PricingConfig()
    return _config
