# Autoheal - Main Package
"""
Chat-driven alert remediation with a history RAG fallback.

This package provides:
- Alert parsing (regex first, optional model-assisted extraction)
- Policy-driven remediation decisions
- Stateless, token-based approval workflow
- Two-phase remote execution over MCP (discover -> execute)
- Retrieval-augmented answers from historical chat messages
"""

__version__ = "0.1.0"
