"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for every ledger ORM model.  Fixes
    the UUID primary key convention, the column type for money, and the
    TrackedBase audit mixin.
Architecture position: Kernel > DB.  Lowest import target inside the kernel.
    MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - Money is Numeric(38, 9) everywhere.  Python Decimal in, Decimal out.
      NEVER float.
    - Primary keys are uuid4 values stored as String(36), so SQLite and
      PostgreSQL share one schema.
    - Timestamps are timezone-aware.

Failure modes:
    - IntegrityError on duplicate primary key (uuid4 collision).

Audit relevance:
    created_by_id / updated_by_id carry the actor_id supplied by the caller
    on every mutating lifecycle operation.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as a 36-character string.

    Guarantees:
        - Binds UUID (or its string form) as str.
        - Loads str back as UUID.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all ledger models.

    Contract:
        Every table has a uuid4 ``id`` primary key and uses the shared
        type_annotation_map so annotated columns get consistent types.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps and actor ids.

    Guarantees:
        - created_at is set by the database on INSERT.
        - updated_at is refreshed on every UPDATE.
        - created_by_id is required; updated_by_id is set by later edits.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
