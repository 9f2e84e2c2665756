"""
Configuration store built from KEY=VALUE pairs.

Values given with ``--env`` end up both as build configuration (the
``WEBOPS_*`` keys) and as variables passed through to the plan.
"""

import re
from typing import Dict, Iterable, Optional

from .errors import ConfigError

CONFIG_PREFIX = 'WEBOPS_'
KEY_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
TRUTHY_VALUES = ('1', 'true', 'yes', 'on')


class Environment:
    """Immutable key/value configuration for one plan generation."""

    def __init__(self, variables: Optional[Dict[str, str]] = None):
        self._variables = dict(variables or {})

    @classmethod
    def from_pairs(cls, pairs: Iterable[str]) -> 'Environment':
        """
        Parse ``KEY=VALUE`` strings.

        Surrounding quotes around the value are removed. Later pairs win
        when a key repeats.

        Raises:
            ConfigError: If a pair has no ``=`` or the key is invalid
        """
        variables = {}

        for pair in pairs:
            if '=' not in pair:
                raise ConfigError(
                    f'Invalid environment entry "{pair}"',
                    ['Environment entries must look like KEY=VALUE'],
                    stage='config',
                )

            key, value = pair.split('=', 1)
            key = key.strip()

            if not KEY_PATTERN.match(key):
                raise ConfigError(
                    f'Invalid environment variable name "{key}"',
                    ['Names may only contain letters, digits and underscores'],
                    stage='config',
                )

            # Remove quotes if present
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]

            variables[key] = value

        return cls(variables)

    def get(self, key: str) -> Optional[str]:
        return self._variables.get(key)

    def get_config_variable(self, name: str) -> Optional[str]:
        """Look up ``WEBOPS_<NAME>``; empty values count as unset."""
        value = self._variables.get(f'{CONFIG_PREFIX}{name.upper()}')
        if value is None or not value.strip():
            return None
        return value

    def is_config_variable_truthy(self, name: str) -> bool:
        value = self.get_config_variable(name)
        return value is not None and value.strip().lower() in TRUTHY_VALUES

    @property
    def variables(self) -> Dict[str, str]:
        """Copy of every variable, including ``WEBOPS_*`` configuration keys."""
        return dict(self._variables)

    def passthrough_variables(self) -> Dict[str, str]:
        """Variables meant for the application, without configuration keys."""
        return {
            key: value
            for key, value in self._variables.items()
            if not key.startswith(CONFIG_PREFIX)
        }

    def __eq__(self, other) -> bool:
        return isinstance(other, Environment) and self._variables == other._variables

    def __repr__(self) -> str:
        return f'Environment({sorted(self._variables)})'
