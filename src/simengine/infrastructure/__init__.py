"""
Infrastructure Layer
====================

Record-store implementations:
- database: SQLAlchemy async store (PostgreSQL, SQLite in tests)
- memory: in-process store for tests and local simulations
"""
