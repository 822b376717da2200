"""
SQLAlchemy ORM Models

Case records live in one table per fuero (partition). The four tables share a
single column layout through ``CaseRecordMixin``.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Enum as SQLEnum,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declared_attr

from causas_ledger.db.database import Base

# JSONB on PostgreSQL (indexable containment), plain JSON text elsewhere.
JSONType = JSON().with_variant(JSONB(), "postgresql")

# ============================================================================
# Enums
# ============================================================================

class UserRole(str, enum.Enum):
    """User roles"""
    user = "user"
    admin = "admin"


class Partition(str, enum.Enum):
    """Case partitions, one per fuero. Values are the canonical partition names."""
    civil = "CausasCivil"
    trabajo = "CausasTrabajo"
    seg_social = "CausasSegSocial"
    comercial = "CausasComercial"

    @property
    def fuero(self) -> str:
        return FUERO_CODES[self]

    @property
    def result_key(self) -> str:
        """Key used in per-partition bulk counts (civil, trabajo, segSocial, comercial)."""
        return RESULT_KEYS[self]


FUERO_CODES = {
    Partition.civil: "CIV",
    Partition.trabajo: "CNT",
    Partition.seg_social: "CSS",
    Partition.comercial: "COM",
}

RESULT_KEYS = {
    Partition.civil: "civil",
    Partition.trabajo: "trabajo",
    Partition.seg_social: "segSocial",
    Partition.comercial: "comercial",
}

# ============================================================================
# Users (read by the auth dependency only)
# ============================================================================

class User(Base):
    """Application user"""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.user)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


# ============================================================================
# Case records
# ============================================================================

class CaseRecordMixin:
    """
    Shared layout of a partition table.

    Ledger-owned: folder_refs, subscriber_user_refs, subscription_entries,
    needs_sync, source. Scraper-owned (read only here): verified, is_valid,
    caratula, objeto, juzgado, secretaria, movimiento.
    """

    @declared_attr
    def __table_args__(cls):
        return (
            UniqueConstraint("number", "year", name=f"uq_{cls.__tablename__}_number_year"),
        )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Identification
    number = Column(String(50), nullable=False, index=True)
    year = Column(String(10), nullable=False)
    fuero = Column(String(5), nullable=True)

    # Subscription ledger
    folder_refs = Column(JSONType, nullable=True, default=list)
    subscriber_user_refs = Column(JSONType, nullable=True, default=list)
    subscription_entries = Column(JSONType, nullable=True, default=dict)  # {user_id: enabled}
    needs_sync = Column(Boolean, nullable=False, default=False, index=True)
    source = Column(String(20), nullable=True)

    # Scraper-owned
    verified = Column(Boolean, nullable=False, default=False)
    is_valid = Column(Boolean, nullable=True)
    caratula = Column(Text, nullable=True)
    objeto = Column(Text, nullable=True)
    juzgado = Column(String(255), nullable=True)
    secretaria = Column(String(255), nullable=True)
    movimiento = Column(JSONType, nullable=True)  # [{fecha, tipo, detalle, ...}]

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class CausaCivil(CaseRecordMixin, Base):
    __tablename__ = "causas_civil"


class CausaTrabajo(CaseRecordMixin, Base):
    __tablename__ = "causas_trabajo"


class CausaSegSocial(CaseRecordMixin, Base):
    __tablename__ = "causas_seg_social"


class CausaComercial(CaseRecordMixin, Base):
    __tablename__ = "causas_comercial"


# Each partition is bound to its table once, at import time.
PARTITION_MODELS = {
    Partition.civil: CausaCivil,
    Partition.trabajo: CausaTrabajo,
    Partition.seg_social: CausaSegSocial,
    Partition.comercial: CausaComercial,
}
