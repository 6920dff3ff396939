"""
Service layer: lifecycle operations and on-the-fly rollup queries.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""
