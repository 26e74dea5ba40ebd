# Config Package
"""
Configuration for the remediation bot.

- settings.py: environment-driven settings (see `.env`)
- policies.yaml: remediation policy table, one entry per alert type

Usage:
    from autoheal.config.settings import get_config

    config = get_config()
    policy_file = config.governance.policy_path
"""

from pathlib import Path

CONFIG_DIR = Path(__file__).parent
DEFAULT_POLICY_PATH = CONFIG_DIR / "policies.yaml"

__all__ = ["CONFIG_DIR", "DEFAULT_POLICY_PATH"]
