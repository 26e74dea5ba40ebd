# Rules Package
"""
Deterministic rule engines.

Rules are pure functions of (parsed alert, policy); no I/O.
"""

from autoheal.rules.policies import PolicyRegistry
from autoheal.rules.policy_engine import DecisionEngine, decide

__all__ = [
    "PolicyRegistry",
    "DecisionEngine",
    "decide",
]
