# (c) Copyright Datacraft, 2026
"""Database module for the policy store."""
from .base import Base
from .engine import create_db_engine, create_session_factory, init_db

__all__ = [
	'Base',
	'create_db_engine',
	'create_session_factory',
	'init_db',
]
