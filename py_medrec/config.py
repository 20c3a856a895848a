# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
This module handles the configuration management for the medication engine.

It uses a hierarchical configuration approach, allowing settings to be loaded
from a YAML file, environment variables, and CLI arguments.
"""
import os
import yaml
from pathlib import Path
from typing import List, Optional, Self
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from .types import ExportFormat

DEFAULT_HIGH_RISK_INGREDIENTS = [
    "warfarin",
    "insulin",
    "digoxin",
    "lithium",
    "phenytoin",
    "carbamazepine",
    "theophylline",
    "methotrexate",
]


class SchedulingSettings(BaseModel):
    """Configuration for administration timing and scoring."""

    timing_tolerance_minutes: int = Field(
        30, description="Variance from the scheduled time still considered on time."
    )
    late_penalty_minutes: int = Field(
        15, description="Accuracy loses one point per this many minutes late."
    )
    review_lookahead_days: int = Field(
        7, description="Window used when listing prescriptions due for review."
    )


class RiskSettings(BaseModel):
    """Configuration for the static drug-risk lookup."""

    high_risk_ingredients: List[str] = Field(
        default_factory=lambda: list(DEFAULT_HIGH_RISK_INGREDIENTS),
        description="Active ingredients treated as high-risk (substring match).",
    )
    controlled_ingredients: List[str] = Field(
        default_factory=list,
        description="Controlled-substance ingredients, also treated as high-risk.",
    )
    major_interaction_ingredients: List[str] = Field(
        default_factory=list,
        description="Ingredients with a known major or contraindicated interaction.",
    )


class ExportSettings(BaseModel):
    """Configuration for discrepancy exports."""

    export_dir: str = Field("./exports", description="Directory for exported files.")
    export_format: ExportFormat = Field(
        ExportFormat.CSV, description="The file format for discrepancy exports."
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Settings are loaded from the following sources in order of precedence:
    1. Environment variables (e.g., `PY_MEDREC_SCHEDULING__TIMING_TOLERANCE_MINUTES=...`)
    2. YAML configuration file (`config.yaml` or path specified by `CONFIG_FILE` env var)
    3. Default values defined in this class.
    """

    model_config = SettingsConfigDict(
        env_prefix="PY_MEDREC_",
        env_nested_delimiter="__",
        env_file_encoding="utf-8",
    )

    scheduling: SchedulingSettings = Field(default_factory=SchedulingSettings)  # type: ignore
    risk: RiskSettings = Field(default_factory=RiskSettings)  # type: ignore
    export: ExportSettings = Field(default_factory=ExportSettings)  # type: ignore
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, path: Path) -> Self:
        """Load configuration from a YAML file."""
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found at: {path}")

        with open(path, "r") as f:
            config_data = yaml.safe_load(f)

        return cls.model_validate(config_data)


def load_config(profile: Optional[str] = None, config_file: Optional[str] = None) -> AppSettings:
    """
    Load application configuration.

    It loads settings from a YAML file and then overrides with any
    environment variables. A specific profile can be selected from the config file.

    :param profile: The configuration profile to load (e.g., 'dev', 'prod').
    :param config_file: Path to a specific YAML config file.
    :return: An instance of AppSettings.
    """
    # pydantic-settings does not prioritise env vars over file values for nested
    # models, so environment settings are loaded first and file values only
    # fill the fields the environment left unset.
    env_settings = AppSettings()

    cfg_path_str = config_file or os.environ.get("CONFIG_FILE", "config.yaml")
    cfg_path = Path(cfg_path_str)

    if cfg_path.exists():
        with open(cfg_path, "r") as f:
            yaml_data = yaml.safe_load(f) or {}

        profile_data = yaml_data.get(profile, {}) if profile else yaml_data

        if profile_data:
            file_settings = AppSettings.model_validate(profile_data)
            sections = {
                "scheduling": file_settings.scheduling,
                "risk": file_settings.risk,
                "export": file_settings.export,
            }
            for section_name, section in sections.items():
                target = getattr(env_settings, section_name)
                for field_name in type(section).model_fields:
                    env_var = f"PY_MEDREC_{section_name.upper()}__{field_name.upper()}"
                    if os.getenv(env_var) is None:
                        setattr(target, field_name, getattr(section, field_name))
            if os.getenv("PY_MEDREC_LOG_LEVEL") is None:
                env_settings.log_level = file_settings.log_level

    return env_settings


# Example of how to create a default config file for users
DEFAULT_CONFIG = """
# Default configuration for py-medrec
# You can create profiles like 'dev', 'staging', 'prod'
dev:
  scheduling:
    timing_tolerance_minutes: 30
    late_penalty_minutes: 15
  risk:
    controlled_ingredients: [morphine, oxycodone, fentanyl]
  export:
    export_dir: /tmp/medrec_exports
  log_level: DEBUG

prod:
  risk:
    controlled_ingredients: [morphine, oxycodone, fentanyl, diamorphine, methadone]
    major_interaction_ingredients: [clarithromycin, amiodarone]
  export:
    export_dir: /data/medrec
    export_format: parquet
  log_level: INFO
"""
