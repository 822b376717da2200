# backend/causas_ledger/db/__init__.py

"""
Database Module

Contains SQLAlchemy models, Pydantic schemas, and database configuration.
"""

from causas_ledger.db.database import Base, engine, SessionLocal, get_db, init_db
from causas_ledger.db import models, schemas

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'get_db',
    'init_db',
    'models',
    'schemas'
]
