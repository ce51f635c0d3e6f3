"""
CAS configuration loader for casguard

Loads and validates CAS client settings from cas-config.yaml and the environment.
The resulting CASConfig is immutable and shared read-only by every request.
"""

import os
import yaml
import logging
from types import MappingProxyType
from typing import Dict, Optional, Any, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Validation endpoint per CAS protocol version
VALIDATION_PATHS = {
    '1.0': '/validate',
    '2.0': '/serviceValidate',
    '3.0': '/p3/serviceValidate',
}

SUPPORTED_VERSIONS = tuple(VALIDATION_PATHS)

# Protocol versions that carry user attributes
ATTRIBUTE_VERSIONS = ('2.0', '3.0')

DEFAULT_CONFIG_LOCATIONS = [
    Path.home() / ".casguard" / "cas-config.yaml",
    Path.cwd() / "cas-config.yaml",
    Path.cwd() / "config" / "cas-config.yaml",
]

# Environment variables that override values from the config file
ENV_OVERRIDES = {
    'CAS_URL': 'cas_url',
    'CAS_SERVICE_URL': 'service_url',
    'CAS_VERSION': 'cas_version',
    'CAS_VALIDATION_TIMEOUT': 'validation_timeout',
}

TRUE_VALUES = ('true', 'yes', 'on', '1')
FALSE_VALUES = ('false', 'no', 'off', '0', '')


def _as_bool(value: Any) -> bool:
    """Interpret a YAML or environment flag value"""
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUE_VALUES:
            return True
        if normalized in FALSE_VALUES:
            return False
        raise ValueError(f"expected a boolean, got {value!r}")
    return bool(value)


@dataclass(frozen=True)
class CASConfig:
    """CAS client configuration"""
    cas_url: str
    service_url: str
    cas_version: str = '3.0'
    renew: bool = False

    # Development shortcut: every unauthenticated session becomes dev_mode_user
    is_dev_mode: bool = False
    dev_mode_user: str = ''
    dev_mode_info: Mapping[str, Any] = field(default_factory=dict)

    # Session keys
    session_name: str = 'cas_user'
    session_info: Optional[str] = None  # Only honored for CAS 2.0/3.0
    return_to_key: str = 'cas_return_to'
    destroy_session: bool = False

    # Seconds to wait for the CAS server during ticket validation
    validation_timeout: float = 10.0

    def __post_init__(self):
        if not self.cas_url:
            raise ConfigurationError("CAS Authentication requires a cas_url parameter.")
        if not self.service_url:
            raise ConfigurationError("CAS Authentication requires a service_url parameter.")
        if not isinstance(self.cas_url, str) or not isinstance(self.service_url, str):
            raise ConfigurationError("cas_url and service_url must be strings.")
        if self.cas_version not in VALIDATION_PATHS:
            raise ConfigurationError(
                f'The supplied CAS version ("{self.cas_version}") is not supported.'
            )
        if self.validation_timeout <= 0:
            raise ConfigurationError("validation_timeout must be a positive number of seconds")
        if self.is_dev_mode and not self.dev_mode_user:
            raise ConfigurationError("CAS dev mode requires a dev_mode_user.")

        # The dataclass is frozen, so normalized values go through object.__setattr__
        object.__setattr__(self, 'cas_url', self.cas_url.rstrip('/'))
        object.__setattr__(self, 'dev_mode_info', MappingProxyType(dict(self.dev_mode_info or {})))
        if self.cas_version not in ATTRIBUTE_VERSIONS:
            object.__setattr__(self, 'session_info', None)

    @property
    def validation_path(self) -> str:
        """Validation endpoint path for the configured protocol version"""
        return VALIDATION_PATHS[self.cas_version]

    @property
    def validation_url(self) -> str:
        return self.cas_url + self.validation_path

    @property
    def supports_attributes(self) -> bool:
        return self.cas_version in ATTRIBUTE_VERSIONS

    @classmethod
    def load_from_file(cls, config_path: Optional[str] = None) -> 'CASConfig':
        """
        Load CAS configuration from a YAML file

        Args:
            config_path: Path to cas-config.yaml. If None, the default locations are searched.

        Returns:
            CASConfig instance

        Raises:
            FileNotFoundError: If no config file is found
            ConfigurationError: If the config is invalid
        """
        if config_path is None:
            for path in DEFAULT_CONFIG_LOCATIONS:
                if path.exists():
                    config_path = str(path)
                    break

            if not config_path:
                raise FileNotFoundError(
                    f"cas-config.yaml not found in any of: {[str(p) for p in DEFAULT_CONFIG_LOCATIONS]}"
                )

        logger.info(f"Loading CAS config from: {config_path}")

        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load CAS config: {e}") from e

        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> 'CASConfig':
        """
        Create CASConfig from a dictionary

        The settings may live at the top level or under a ``cas`` section.
        Environment variables listed in ENV_OVERRIDES take precedence.
        """
        if not isinstance(config_data, dict):
            raise ConfigurationError("CAS Authentication was not given a valid configuration object.")

        if environ is None:
            environ = os.environ

        try:
            section = config_data.get('cas', config_data)
            if section is None:
                section = {}
            if not isinstance(section, dict):
                raise ConfigurationError("The cas section of the configuration must be a mapping.")

            cas_data = dict(section)
            for env_name, key in ENV_OVERRIDES.items():
                if environ.get(env_name):
                    cas_data[key] = environ[env_name]

            return cls(
                cas_url=cas_data.get('cas_url', ''),
                service_url=cas_data.get('service_url', ''),
                cas_version=str(cas_data.get('cas_version', '3.0')),
                renew=_as_bool(cas_data.get('renew', False)),
                is_dev_mode=_as_bool(cas_data.get('is_dev_mode', False)),
                dev_mode_user=cas_data.get('dev_mode_user', ''),
                dev_mode_info=cas_data.get('dev_mode_info') or {},
                session_name=cas_data.get('session_name', 'cas_user'),
                session_info=cas_data.get('session_info') or None,
                return_to_key=cas_data.get('return_to_key', 'cas_return_to'),
                destroy_session=_as_bool(cas_data.get('destroy_session', False)),
                validation_timeout=float(cas_data.get('validation_timeout', 10.0))
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid CAS configuration: {e}") from e
