"""
REST gateway for MotherDuck (DuckDB) catalogs.

Exposes a single attached MotherDuck database via HTTP endpoints for
table discovery, diagnostics and read-only SELECT queries.
"""

__version__ = "1.0.0"
