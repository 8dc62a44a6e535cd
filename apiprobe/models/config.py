"""Configuration management for the endpoint health prober."""

import json
import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from apiprobe.models.data_models import Endpoint


DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class RegistryError(Exception):
    """The endpoint registry is missing or unusable."""


class EndpointConfig(BaseModel):
    """Configuration for a single registry entry."""
    key: str = Field(description="Unique endpoint identifier")
    name: str = Field(description="Display label")
    api: str = Field(description="API base URL")

    @field_validator('api')
    @classmethod
    def validate_api(cls, v: str) -> str:
        """Validate URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError(f"URL must start with http:// or https://, got: {v}")
        return v

    def to_endpoint(self) -> Endpoint:
        return Endpoint(key=self.key, name=self.name, base_url=self.api)


class ProbeConfig(BaseModel):
    """Prober settings."""

    # Probe behaviour
    concurrency: int = Field(default=10, description="Maximum probes in flight")
    timeout: float = Field(default=8.0, description="Per-attempt timeout in seconds")
    max_retries: int = Field(default=1, description="Retries after a network error")
    test_query: str = Field(default="?ac=list", description="Query appended to every base URL")
    list_field: str = Field(default="list", description="Response field holding the item list")

    # Request headers
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header")
    accept: str = Field(default="application/json", description="Accept header")

    # Registry
    registry_path: str = Field(default="config.json", description="Endpoint registry JSON file")
    registry_section: str = Field(default="api_site", description="Registry section mapping key to site")

    # Whole-run deadline, disabled by default
    total_timeout: Optional[float] = Field(default=None, description="Maximum run time in seconds")

    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")

    # Output
    output_directory: str = Field(default=".", description="Output directory for the report")
    output_filename: str = Field(default="api-test-report.json", description="Report filename")

    # Inline endpoints; when empty the registry file is used
    endpoints: List[EndpointConfig] = Field(default=[], description="Endpoints to probe")

    @field_validator('concurrency')
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"concurrency must be positive, got: {v}")
        return v

    @field_validator('timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout must be positive, got: {v}")
        return v

    @field_validator('max_retries')
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_retries must not be negative, got: {v}")
        return v

    @field_validator('total_timeout')
    @classmethod
    def validate_total_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"total_timeout must be positive, got: {v}")
        return v

    @property
    def output_path(self) -> Path:
        """Get full report file path."""
        return Path(self.output_directory) / self.output_filename

    @property
    def headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": self.accept}

    @classmethod
    def from_env(cls) -> "ProbeConfig":
        """Create configuration with environment variable overrides."""
        return cls(**cls.env_overrides())

    @classmethod
    def env_overrides(cls) -> Dict:
        """Settings taken from PROBE_* variables; only variables that are set appear."""
        overrides = {}

        env_mappings = {
            "PROBE_CONCURRENCY": "concurrency",
            "PROBE_TIMEOUT": "timeout",
            "PROBE_MAX_RETRIES": "max_retries",
            "PROBE_TEST_QUERY": "test_query",
            "PROBE_REGISTRY": "registry_path",
            "PROBE_LOG_LEVEL": "log_level",
            "PROBE_OUTPUT_DIR": "output_directory",
            "PROBE_TOTAL_TIMEOUT": "total_timeout",
        }

        for env_var, field_name in env_mappings.items():
            if env_var in os.environ:
                value = os.environ[env_var]
                field_info = cls.model_fields[field_name]
                if field_info.annotation == int:
                    overrides[field_name] = int(value)
                elif field_info.annotation in (float, Optional[float]):
                    overrides[field_name] = float(value)
                else:
                    overrides[field_name] = value

        return overrides


def load_registry(path: Path, section: str = "api_site") -> List[EndpointConfig]:
    """
    Load endpoints from the external registry document.

    The document is JSON of the form ``{section: {key: {"name": ..., "api": ...}}}``.
    Entries keep document order; extra per-site keys are ignored.

    Raises:
        RegistryError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    if not path.exists():
        raise RegistryError(f"endpoint registry not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except (OSError, ValueError) as e:
        raise RegistryError(f"cannot read endpoint registry {path}: {e}") from e

    sites = document.get(section) if isinstance(document, dict) else None
    if not isinstance(sites, dict):
        raise RegistryError(f"endpoint registry {path} has no '{section}' mapping")

    endpoints = []
    for key, site in sites.items():
        if not isinstance(site, dict):
            raise RegistryError(f"registry entry '{key}' must be a mapping")
        try:
            endpoints.append(EndpointConfig(key=key, name=site.get("name", key), api=site.get("api", "")))
        except ValueError as e:
            raise RegistryError(f"invalid registry entry '{key}': {e}") from e
    return endpoints


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or Path("config/config.yaml")
        self._config: Optional[ProbeConfig] = None

    def load_config(self, cli_overrides: Optional[Dict] = None) -> ProbeConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML.

        Args:
            cli_overrides: Optional dictionary of CLI flag overrides

        Returns:
            Fully merged ProbeConfig instance

        Raises:
            ValueError: If configuration validation fails
        """
        config_dict = {}

        if self.config_file.exists():
            with open(self.config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
                if yaml_config:
                    if 'endpoints' in yaml_config:
                        yaml_config['endpoints'] = [
                            EndpointConfig(**ep) if isinstance(ep, dict) else ep
                            for ep in yaml_config['endpoints']
                        ]
                    config_dict.update(yaml_config)

        base_config = ProbeConfig(**config_dict)

        merged_dict = base_config.model_dump()
        merged_dict.update(ProbeConfig.env_overrides())

        if cli_overrides:
            cli_overrides = {k: v for k, v in cli_overrides.items() if v is not None}
            merged_dict.update(cli_overrides)

        self._config = ProbeConfig(**merged_dict)
        return self._config

    @staticmethod
    def load_endpoints(config: ProbeConfig) -> List[Endpoint]:
        """
        Resolve the endpoints to probe.

        Inline endpoints from the YAML file win; otherwise the registry file
        named by ``registry_path`` is read.

        Raises:
            RegistryError: If the registry cannot be loaded or is empty
        """
        entries = config.endpoints or load_registry(Path(config.registry_path), config.registry_section)
        if not entries:
            raise RegistryError("endpoint registry is empty")

        seen = set()
        for entry in entries:
            if entry.key in seen:
                raise RegistryError(f"duplicate endpoint key: {entry.key}")
            seen.add(entry.key)

        return [entry.to_endpoint() for entry in entries]

    @property
    def config(self) -> ProbeConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
