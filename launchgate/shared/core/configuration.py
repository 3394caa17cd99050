"""
Configuration Management System for launchgate

This module provides a centralized configuration system that supports a 4-tier
precedence hierarchy: environment → project → user → system defaults.
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from launchgate.shared.config import SETTINGS_DIR

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_DIR = SETTINGS_DIR

# 32-byte APNs token rendered as hex, all zeros
FALLBACK_PUSH_TOKEN = "0" * 64


class ValidationLevel(Enum):
    """Configuration validation strictness levels"""
    STRICT = "strict"      # Fail fast on validation errors
    LENIENT = "lenient"    # Log warnings, use defaults


class CollectionConfig(BaseModel):
    """Signal collection (deadline join) configuration"""
    model_config = ConfigDict(extra='forbid')

    deadline_seconds: float = Field(default=15.0, ge=0.1, le=120.0, description="Shared deadline for the whole collection phase (seconds)")
    fallback_push_token: str = Field(default=FALLBACK_PUSH_TOKEN, min_length=1, description="Token sent when no push token is available")
    reuse_cached_push_token: bool = Field(default=False, description="Resolve the push slot from a persisted token without asking the platform")


class HandshakeConfig(BaseModel):
    """Handshake endpoint configuration"""
    model_config = ConfigDict(extra='forbid')

    domain_suffix: str = Field(default="top", min_length=1, description="Top-level suffix appended to the derived domain")
    scheme: str = Field(default="https", description="Scheme for the handshake request; bare redirect addresses always get https")
    endpoint_path: str = Field(default="indexn.php", description="Path of the handshake endpoint")
    query_parameter: str = Field(default="data", description="Query parameter carrying the encoded payload")
    request_timeout: float = Field(default=10.0, ge=0.5, le=120.0, description="Network timeout for the single request (seconds)")
    user_agent: Optional[str] = Field(default=None, description="Override for the User-Agent header")

    @field_validator("domain_suffix")
    @classmethod
    def _strip_leading_dot(cls, value: str) -> str:
        return value.lstrip(".")

    @field_validator("scheme")
    @classmethod
    def _known_scheme(cls, value: str) -> str:
        value = value.lower()
        if value not in ("http", "https"):
            raise ValueError(f"unsupported scheme: {value}")
        return value


class GateConfig(BaseModel):
    """Redirect gate policy"""
    model_config = ConfigDict(extra='forbid')

    replay_saved_address: bool = Field(default=True, description="Replay a saved redirect address on later launches")
    continue_after_redirect: bool = Field(default=False, description="Also invoke the host continuation after activating the surface")


class DatabaseConfig(BaseModel):
    """Launch state database configuration"""
    model_config = ConfigDict(extra='forbid')

    db_path: str = Field(default="data/db/launch_state.duckdb", description="Database file path")


class LoggingConfig(BaseModel):
    """Logging configuration for the host harness"""
    model_config = ConfigDict(extra='forbid')

    level: str = Field(default="INFO", description="File log level")
    log_dir: str = Field(default="data/logs", description="Directory for rotating log files")


class SystemConfig(BaseModel):
    """Complete system configuration"""
    model_config = ConfigDict(extra='forbid')

    collection: CollectionConfig = Field(default_factory=CollectionConfig)
    handshake: HandshakeConfig = Field(default_factory=HandshakeConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Metadata
    schema_version: int = Field(default=1, description="Configuration schema version")


# env var -> (section, key, type)
ENV_MAP: Dict[str, tuple] = {
    'LAUNCHGATE_DEADLINE_SECONDS': ('collection', 'deadline_seconds', float),
    'LAUNCHGATE_FALLBACK_PUSH_TOKEN': ('collection', 'fallback_push_token', str),
    'LAUNCHGATE_REUSE_CACHED_PUSH_TOKEN': ('collection', 'reuse_cached_push_token', bool),
    'LAUNCHGATE_DOMAIN_SUFFIX': ('handshake', 'domain_suffix', str),
    'LAUNCHGATE_SCHEME': ('handshake', 'scheme', str),
    'LAUNCHGATE_REQUEST_TIMEOUT': ('handshake', 'request_timeout', float),
    'LAUNCHGATE_USER_AGENT': ('handshake', 'user_agent', str),
    'LAUNCHGATE_REPLAY_SAVED_ADDRESS': ('gate', 'replay_saved_address', bool),
    'LAUNCHGATE_CONTINUE_AFTER_REDIRECT': ('gate', 'continue_after_redirect', bool),
    'LAUNCHGATE_DB_PATH': ('database', 'db_path', str),
    'LOG_LEVEL': ('logging', 'level', str),
    'LAUNCHGATE_LOG_DIR': ('logging', 'log_dir', str),
}


class ConfigManager:
    """Centralized configuration manager with 4-tier precedence hierarchy"""

    def __init__(self, config_dir: Optional[Path] = None, env_file: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_SETTINGS_DIR
        self._system_config: Optional[SystemConfig] = None
        self._user_config: Optional[Dict[str, Any]] = None
        self._project_config: Optional[Dict[str, Any]] = None

        if env_file is not None:
            load_dotenv(dotenv_path=env_file)

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """Load YAML configuration file"""
        if not file_path.exists():
            return {}

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Failed to load {file_path}: {e}")
            return {}

    def _save_yaml_file(self, file_path: Path, data: Dict[str, Any]) -> bool:
        """Save configuration to YAML file"""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2)
            return True
        except OSError as e:
            logger.error(f"Failed to save {file_path}: {e}")
            return False

    def _load_system_defaults(self) -> SystemConfig:
        """Load system default configuration"""
        if self._system_config is None:
            defaults_dict = self._load_yaml_file(self.config_dir / "defaults.yaml")

            try:
                self._system_config = SystemConfig(**defaults_dict)
            except ValidationError as e:
                logger.warning(f"System defaults validation failed: {e}")
                # Use Pydantic defaults
                self._system_config = SystemConfig()

        return self._system_config

    def _load_user_config(self) -> Dict[str, Any]:
        """Load user-level configuration"""
        if self._user_config is None:
            self._user_config = self._load_yaml_file(self.config_dir / "user.yaml")
        return self._user_config

    def _load_project_config(self) -> Dict[str, Any]:
        """Load project-specific configuration"""
        if self._project_config is None:
            self._project_config = self._load_yaml_file(self.config_dir / "project.yaml")
        return self._project_config

    def _merge_configs(self) -> Dict[str, Any]:
        """Merge configurations with precedence: env → project → user → system"""
        merged = self._load_system_defaults().model_dump()

        self._deep_merge(merged, self._load_user_config())
        self._deep_merge(merged, self._load_project_config())
        self._deep_merge(merged, self._get_env_overrides())

        return merged

    def _deep_merge(self, base: Dict[str, Any], updates: Dict[str, Any]) -> None:
        """Deep merge configuration dictionaries"""
        for key, value in updates.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _get_env_overrides(self) -> Dict[str, Any]:
        """Extract configuration overrides from environment variables"""
        overrides: Dict[str, Any] = {}
        for env_key, (section, config_key, kind) in ENV_MAP.items():
            value = os.getenv(env_key)
            if value is None:
                continue

            if kind is bool:
                converted: Any = value.strip().lower() in ('true', '1', 'yes', 'on')
            elif kind is float:
                try:
                    converted = float(value)
                except ValueError:
                    logger.warning(f"Ignoring non-numeric {env_key}={value!r}")
                    continue
            else:
                converted = value

            overrides.setdefault(section, {})[config_key] = converted

        return overrides

    def get_config(self, validation_level: ValidationLevel = ValidationLevel.STRICT) -> SystemConfig:
        """Get merged configuration with validation"""
        merged_config = self._merge_configs()

        try:
            return SystemConfig(**merged_config)
        except ValidationError as e:
            if validation_level == ValidationLevel.STRICT:
                raise ValueError(f"Configuration validation failed: {e}") from e
            logger.warning(f"Configuration validation failed, using defaults: {e}")
            return SystemConfig()

    def save_project_config(self, config_updates: Dict[str, Any]) -> bool:
        """Save project-specific configuration updates"""
        project_path = self.config_dir / "project.yaml"

        existing_config = self._load_yaml_file(project_path)
        self._deep_merge(existing_config, config_updates)

        success = self._save_yaml_file(project_path, existing_config)
        if success:
            # Clear cached project config to force reload
            self._project_config = None

        return success

    def reload_config(self) -> None:
        """Clear cached configurations and reload from files"""
        self._system_config = None
        self._user_config = None
        self._project_config = None


# Global instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_dir: Optional[Path] = None) -> ConfigManager:
    """Get global configuration manager instance"""
    global _config_manager
    if _config_manager is None or config_dir is not None:
        _config_manager = ConfigManager(config_dir)
    return _config_manager


def get_config(validation_level: ValidationLevel = ValidationLevel.STRICT) -> SystemConfig:
    """Get current system configuration"""
    return get_config_manager().get_config(validation_level)
