"""Configuration management for the similar products service."""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class CacheTierConfig(BaseModel):
    """TTL and size bound of a single cache tier."""
    ttl_seconds: float = Field(default=600.0, description="Expire-after-write TTL in seconds")
    max_size: int = Field(default=25000, description="Maximum number of entries")

    @field_validator('ttl_seconds')
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        """Validate TTL is positive."""
        if v <= 0:
            raise ValueError(f"ttl_seconds must be positive, got: {v}")
        return v

    @field_validator('max_size')
    @classmethod
    def validate_max_size(cls, v: int) -> int:
        """Validate size bound is positive."""
        if v <= 0:
            raise ValueError(f"max_size must be positive, got: {v}")
        return v


class ServiceConfig(BaseModel):
    """Main service configuration."""

    # Upstream endpoints
    similar_ids_url: str = Field(
        default="http://localhost:3001/product/{product_id}/similarids",
        description="Similar ids upstream URL template"
    )
    product_detail_url: str = Field(
        default="http://localhost:3001/product/{product_id}",
        description="Product detail upstream URL template"
    )

    # Timeouts
    connect_timeout: float = Field(default=1.0, description="HTTP connect timeout in seconds")
    request_timeout: float = Field(default=1.5, description="Per-call deadline in seconds")
    timeout_multiplier: float = Field(
        default=2.0,
        description="Aggregate deadline as a multiple of request_timeout"
    )
    max_connections: int = Field(default=1000, description="HTTP connection pool size")

    # Retry configuration
    max_retries: int = Field(default=3, description="Maximum attempts per upstream call")
    retry_base_delay: float = Field(default=0.1, description="Base delay for exponential backoff")
    retry_max_delay: float = Field(default=1.0, description="Maximum retry delay")
    retry_jitter_max: float = Field(default=0.05, description="Maximum jitter for retry delay")
    retryable_status_codes: List[int] = Field(
        default=[429],
        description="Non-5xx HTTP status codes that trigger retries"
    )

    # Circuit breaker configuration
    circuit_breaker_window_size: int = Field(default=10, description="Sliding window size in calls")
    circuit_breaker_minimum_calls: int = Field(
        default=5,
        description="Calls recorded before the failure rate is evaluated"
    )
    circuit_breaker_failure_rate: float = Field(
        default=0.5,
        description="Failure ratio that opens the circuit"
    )
    circuit_breaker_cooldown: float = Field(default=10.0, description="Open state duration in seconds")
    circuit_breaker_half_open_calls: int = Field(default=1, description="Trial calls while half-open")

    # Fan-out configuration
    parallelism_factor: int = Field(
        default=4,
        description="Concurrent detail lookups per available CPU"
    )
    filter_unavailable: bool = Field(
        default=False,
        description="Drop resolved products whose availability is false"
    )

    # Cache configuration
    similar_ids_cache: CacheTierConfig = Field(default_factory=CacheTierConfig)
    product_details_cache: CacheTierConfig = Field(default_factory=CacheTierConfig)
    similar_products_cache: CacheTierConfig = Field(default_factory=CacheTierConfig)

    # Server configuration
    host: str = Field(default="0.0.0.0", description="API bind address")
    port: int = Field(default=5000, description="API port")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator('similar_ids_url', 'product_detail_url')
    @classmethod
    def validate_url_template(cls, v: str) -> str:
        """Validate URL template format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError(f"URL must start with http:// or https://, got: {v}")
        if '{product_id}' not in v:
            raise ValueError(f"URL template must contain '{{product_id}}', got: {v}")
        return v

    @field_validator('connect_timeout', 'request_timeout', 'timeout_multiplier', 'circuit_breaker_cooldown')
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError(f"value must be positive, got: {v}")
        return v

    @field_validator('max_retries', 'parallelism_factor', 'max_connections',
                     'circuit_breaker_window_size', 'circuit_breaker_minimum_calls',
                     'circuit_breaker_half_open_calls')
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate counts are positive."""
        if v <= 0:
            raise ValueError(f"value must be positive, got: {v}")
        return v

    @field_validator('circuit_breaker_failure_rate')
    @classmethod
    def validate_failure_rate(cls, v: float) -> float:
        """Validate failure rate is a ratio."""
        if not 0.0 < v <= 1.0:
            raise ValueError(f"circuit_breaker_failure_rate must be in (0, 1], got: {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode='after')
    def validate_circuit_breaker_window(self) -> 'ServiceConfig':
        """Validate the breaker can collect minimum_calls within its window."""
        if self.circuit_breaker_minimum_calls > self.circuit_breaker_window_size:
            raise ValueError(
                "circuit_breaker_minimum_calls must not exceed circuit_breaker_window_size, "
                f"got: {self.circuit_breaker_minimum_calls} > {self.circuit_breaker_window_size}"
            )
        return self

    @property
    def aggregate_timeout(self) -> float:
        """Deadline for candidate discovery plus fan-out."""
        return self.request_timeout * self.timeout_multiplier

    @property
    def fan_out_parallelism(self) -> int:
        """Concurrent detail lookups allowed for one request."""
        return self.parallelism_factor * (os.cpu_count() or 1)

    # Environment variable overrides
    @classmethod
    def env_overrides(cls) -> Dict[str, Any]:
        """Collect configuration overrides from environment variables."""
        env_mappings = {
            "SIMILAR_IDS_URL": "similar_ids_url",
            "SIMILAR_PRODUCT_DETAIL_URL": "product_detail_url",
            "SIMILAR_REQUEST_TIMEOUT": "request_timeout",
            "SIMILAR_TIMEOUT_MULTIPLIER": "timeout_multiplier",
            "SIMILAR_MAX_RETRIES": "max_retries",
            "SIMILAR_PARALLELISM_FACTOR": "parallelism_factor",
            "SIMILAR_FILTER_UNAVAILABLE": "filter_unavailable",
            "SIMILAR_LOG_LEVEL": "log_level",
            "SIMILAR_PORT": "port",
        }

        overrides = {}
        for env_var, field_name in env_mappings.items():
            if env_var in os.environ:
                # pydantic coerces the string to the field type
                overrides[field_name] = os.environ[env_var]
        return overrides


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or Path("config/config.yaml")
        self._config: Optional[ServiceConfig] = None

    def load_config(self, cli_overrides: Optional[Dict] = None) -> ServiceConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML.

        Args:
            cli_overrides: Optional dictionary of CLI flag overrides

        Returns:
            Fully merged ServiceConfig instance

        Raises:
            ValueError: If configuration validation fails
        """
        config_dict: Dict[str, Any] = {}

        if self.config_file.exists():
            with open(self.config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
                if yaml_config:
                    config_dict.update(yaml_config)

        config_dict.update(ServiceConfig.env_overrides())

        if cli_overrides:
            # Filter out None values from CLI
            config_dict.update({k: v for k, v in cli_overrides.items() if v is not None})

        self._config = ServiceConfig(**config_dict)
        return self._config

    @property
    def config(self) -> ServiceConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
