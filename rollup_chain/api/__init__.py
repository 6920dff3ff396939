"""
HTTP API routers and dependencies.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""
