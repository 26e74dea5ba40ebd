# API Package
"""FastAPI front end and Slack Block Kit builders."""

from autoheal.api.server import create_app

__all__ = ["create_app"]
