"""
Configuration for the ROAS report pipeline.

Edit the defaults here, or override them with ROAS_* environment variables
through PipelineConfig.from_env().
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List


# Environment variable -> (attribute, converter)
ENV_OVERRIDES = {
    "ROAS_DATA_DIR": ("data_dir", str),
    "ROAS_DATABASE": ("database", str),
    "CLICKHOUSE_HOST": ("clickhouse_host", str),
    "CLICKHOUSE_PORT": ("clickhouse_port", int),
    "CLICKHOUSE_USER": ("clickhouse_user", str),
    "CLICKHOUSE_PASSWORD": ("clickhouse_password", str),
    "ROAS_USE_AWS_SECRETS": ("use_aws_secrets", "bool"),
    "AWS_PROFILE": ("aws_profile", str),
    "ROAS_AWS_SECRET_NAME": ("aws_secret_name", str),
    "AWS_REGION": ("aws_region", str),
    "ROAS_MAX_WORKERS": ("max_workers", int),
    "ROAS_OUTPUT_DIR": ("output_dir", str),
    "ROAS_OUTPUT_FORMATS": ("output_formats", "list"),
    "ROAS_OUTPUT_PREFIX": ("output_prefix", str),
    "LOG_LEVEL": ("log_level", str),
    "ROAS_LOG_FILE": ("log_file", str),
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


def _to_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class PipelineConfig:
    """
    Main configuration for the marketing KPI report pipeline.

    Key concepts:
    - Tables: the six warehouse relations (campaigns, conversions, daily_spend,
      revenue, users, user_acquisition)
    - Reports: LTV, channel conversions, loyalty segmentation, churn buckets,
      channel profitability (ROAS) and CAC, all recomputed on every run
    """

    # === Data Source ===
    data_dir: str = "./data"

    # === ClickHouse Connection ===
    clickhouse_host: str = "localhost"
    clickhouse_port: int = 8123
    clickhouse_user: str = "default"
    clickhouse_password: str = ""
    database: str = "roas"
    use_aws_secrets: bool = True  # If True, fetch creds from AWS Secrets Manager
    aws_profile: str = "default"
    aws_secret_name: str = "ROAS_WAREHOUSE_CREDENTIALS"
    aws_region: str = "us-east-1"

    # === Processing ===
    max_workers: int = 1           # >1 computes reports concurrently

    # === Output ===
    output_dir: str = "./results"
    output_formats: List[str] = field(default_factory=lambda: ["csv"])
    output_prefix: str = ""

    # === Column Mappings: {table: {canonical column: source column}} ===
    column_overrides: Dict[str, Dict[str, str]] = field(default_factory=dict)

    # === Logging ===
    log_level: str = "INFO"
    log_file: str = ""             # Empty disables file logging

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            k: v for k, v in self.__dict__.items()
            if not k.startswith('_')
        }

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """
        Build a config from defaults, then environment variables, then overrides.

        Environment values that fail to convert keep the default.
        """
        config = cls()
        for env_var, (attr, converter) in ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                if converter == "bool":
                    converted = _to_bool(value)
                elif converter == "list":
                    converted = _to_list(value)
                else:
                    converted = converter(value)
            except (ValueError, TypeError):
                logging.warning(f"Ignoring invalid value for {env_var}: {value!r}")
                continue
            setattr(config, attr, converted)

        for key, value in overrides.items():
            if not hasattr(config, key):
                raise AttributeError(f"Unknown config option: {key}")
            setattr(config, key, value)
        return config


# === Quick Access Presets ===

def default_config() -> PipelineConfig:
    """Get default configuration."""
    return PipelineConfig()


def local_config() -> PipelineConfig:
    """Configuration for a local ClickHouse (no AWS)."""
    return PipelineConfig(
        use_aws_secrets=False,
        clickhouse_host="localhost",
        clickhouse_port=8123,
    )
