"""Data stores for persistence and caching.

Stores handle:
- PostgreSQL: DB session, users repository (ScoreStore)
- Redis / in-process: answer cache backends with TTL

No ranking logic in stores - that belongs in services.
"""
