# Tests Package
"""
Test suite for autoheal.

- unit/: Component-level tests
- integration/: End-to-end message and approval flows
- api/: HTTP endpoint tests
"""
