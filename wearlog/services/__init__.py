"""Persistence backends for the wearlog engine.

Modules:
    store           Store / Records interfaces
    sqlite_store    embedded SQLite backend (stdlib sqlite3)
    postgres_store  PostgreSQL backend (asyncpg pool)
    factory         build a store and provider from Settings
"""
