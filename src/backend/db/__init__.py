"""Database module."""

from db.session import close_db, get_store, init_db

__all__ = ["get_store", "init_db", "close_db"]
