"""Configuration for split-role EC2 clients."""

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".splitrole"
CONFIG_FILE_YAML = CONFIG_DIR / "config.yaml"

# Total attempts per EC2 call, including the first one
DEFAULT_RETRY_MAX_ATTEMPTS = 5

ENDPOINT_OVERRIDE_ENV_VAR = "AWS_EC2_ENDPOINT"


@dataclass(frozen=True)
class SplitRoleConfig:
    """
    Construction inputs for a split-role EC2 client.

    The endpoint override is read once when the configuration is built and
    applies to both scoped clients.
    """

    region: Optional[str] = None
    describe_and_delete_role: Optional[str] = None
    create_and_mutate_role: Optional[str] = None
    aws_sdk_debug_log: bool = False
    endpoint_override: Optional[str] = None
    max_retry_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    profile: Optional[str] = None

    @classmethod
    def from_environment(cls) -> "SplitRoleConfig":
        """
        Load configuration from environment variables.

        Returns:
            SplitRoleConfig instance loaded from environment variables
        """
        config = cls(
            region=os.getenv("SPLITROLE_REGION") or os.getenv("AWS_REGION"),
            describe_and_delete_role=os.getenv("SPLITROLE_DESCRIBE_AND_DELETE_ROLE_ARN"),
            create_and_mutate_role=os.getenv("SPLITROLE_CREATE_AND_MUTATE_ROLE_ARN"),
            aws_sdk_debug_log=cls._get_env_bool("SPLITROLE_AWS_SDK_DEBUG_LOG", False),
            endpoint_override=os.getenv(ENDPOINT_OVERRIDE_ENV_VAR) or None,
            max_retry_attempts=cls._get_env_int(
                "SPLITROLE_MAX_RETRY_ATTEMPTS", DEFAULT_RETRY_MAX_ATTEMPTS
            ),
            profile=os.getenv("SPLITROLE_PROFILE"),
        )
        logger.debug("Loaded split-role configuration from environment variables")
        return config

    @classmethod
    def from_file(cls, config_path: Optional[Union[str, Path]] = None) -> "SplitRoleConfig":
        """
        Load configuration from the ``splitrole`` section of a YAML file.

        Args:
            config_path: Path to the YAML file (defaults to ~/.splitrole/config.yaml)

        Returns:
            SplitRoleConfig instance, or the defaults if the file does not exist

        Raises:
            ConfigurationError: If the file is not valid YAML or has unknown keys
        """
        path = Path(config_path) if config_path else CONFIG_FILE_YAML
        if not path.exists():
            logger.debug(f"Configuration file {path} not found, using defaults")
            return cls()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Configuration file {path} is not valid YAML: {e}", e)

        section = data.get("splitrole", {}) if isinstance(data, dict) else {}
        if not isinstance(section, dict):
            raise ConfigurationError(f"'splitrole' section in {path} must be a mapping")

        return cls.from_dict(section)

    @classmethod
    def from_file_and_environment(
        cls, config_path: Optional[Union[str, Path]] = None
    ) -> "SplitRoleConfig":
        """
        Load configuration from file first, then override with environment variables.

        Args:
            config_path: Optional path to the YAML file

        Returns:
            Merged SplitRoleConfig (environment takes precedence)
        """
        file_config = cls.from_file(config_path).to_dict()
        env_config = cls.from_environment().to_dict()

        defaults = cls().to_dict()
        merged = dict(file_config)
        for key, value in env_config.items():
            if value != defaults[key]:
                merged[key] = value

        return cls.from_dict(merged)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SplitRoleConfig":
        """Create SplitRoleConfig from dictionary."""
        known_fields = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known_fields)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

        values = dict(data)
        if "aws_sdk_debug_log" in values:
            values["aws_sdk_debug_log"] = cls._to_bool(values["aws_sdk_debug_log"])
        if "max_retry_attempts" in values:
            try:
                values["max_retry_attempts"] = int(values["max_retry_attempts"])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"max_retry_attempts must be an integer, got {values['max_retry_attempts']!r}",
                    e,
                )
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return asdict(self)

    def validate(self) -> Dict[str, str]:
        """
        Validate the configuration.

        Returns:
            Dictionary mapping field names to problems; empty when valid
        """
        errors = {}

        if not self.region:
            errors["region"] = "Region is required"

        for field_name in ("describe_and_delete_role", "create_and_mutate_role"):
            role_arn = getattr(self, field_name)
            if not role_arn:
                errors[field_name] = "Role ARN is required"
            elif not role_arn.startswith("arn:") or ":role/" not in role_arn:
                errors[field_name] = f"'{role_arn}' is not an IAM role ARN"

        if self.max_retry_attempts < 1:
            errors["max_retry_attempts"] = "Must be at least 1"

        if self.endpoint_override and "://" not in self.endpoint_override:
            errors["endpoint_override"] = "Endpoint override must be a URL"

        return errors

    def ensure_valid(self) -> None:
        """
        Raise if the configuration is not usable.

        Raises:
            ConfigurationError: If any field is missing or invalid
        """
        errors = self.validate()
        if errors:
            details = "; ".join(f"{name}: {problem}" for name, problem in errors.items())
            raise ConfigurationError(f"Invalid split-role configuration: {details}")

    @staticmethod
    def _to_bool(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        return str(value).lower() in ("true", "1", "yes", "on")

    @classmethod
    def _get_env_bool(cls, env_var: str, default: bool) -> bool:
        """
        Get boolean value from environment variable.

        Args:
            env_var: Environment variable name
            default: Default value if not set

        Returns:
            Boolean value
        """
        value = os.environ.get(env_var)
        if value is None:
            return default
        return cls._to_bool(value)

    @staticmethod
    def _get_env_int(env_var: str, default: int) -> int:
        """
        Get integer value from environment variable.

        Args:
            env_var: Environment variable name
            default: Default value if not set or invalid

        Returns:
            Integer value
        """
        value = os.environ.get(env_var)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid integer value for {env_var}: {value}, using default {default}")
            return default
