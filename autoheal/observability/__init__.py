# Observability Package
"""Prometheus metrics for the remediation pipeline."""
