"""
Policy Registry - Remediation Policy Table

Loads the alert_type -> policy mapping from YAML once at startup.
The registry is read-only afterwards and safe for concurrent readers.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

import yaml
from pydantic import ValidationError

from autoheal.config import DEFAULT_POLICY_PATH
from autoheal.models.decision import Policy
from autoheal.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)


class PolicyRegistry:
    """Immutable lookup of remediation policies by alert type."""

    def __init__(self, policies: Iterable[Policy] = ()):
        self._policies: dict[str, Policy] = {}
        for policy in policies:
            if policy.alert_type in self._policies:
                raise ConfigurationError(f"Duplicate policy for alert type '{policy.alert_type}'")
            self._policies[policy.alert_type] = policy

    def get(self, alert_type: str) -> Optional[Policy]:
        """Return the policy for an alert type, or None when unmapped."""
        return self._policies.get(alert_type)

    @property
    def alert_types(self) -> list[str]:
        return sorted(self._policies)

    def __len__(self) -> int:
        return len(self._policies)

    def __contains__(self, alert_type: str) -> bool:
        return alert_type in self._policies

    @classmethod
    def from_dict(cls, data: dict) -> "PolicyRegistry":
        """
        Build a registry from the parsed YAML document.

        Expected shape: {"policies": {<alert_type>: {action, auto_eligible, ...}}}
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Policy document must be a mapping")

        raw_policies = data.get("policies") or {}
        if not isinstance(raw_policies, dict):
            raise ConfigurationError("'policies' must map alert types to policy entries")

        policies = []
        for alert_type, entry in raw_policies.items():
            try:
                policies.append(Policy(alert_type=alert_type, **(entry or {})))
            except (ValidationError, TypeError) as e:
                raise ConfigurationError(f"Invalid policy for '{alert_type}': {e}") from e
        return cls(policies)

    @classmethod
    def load(cls, path: str | Path = DEFAULT_POLICY_PATH) -> "PolicyRegistry":
        """Load policies from a YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"Cannot read policy file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Policy file {path} is not valid YAML: {e}") from e

        registry = cls.from_dict(data)
        logger.info(f"Loaded {len(registry)} remediation policies from {path}: {registry.alert_types}")
        return registry
