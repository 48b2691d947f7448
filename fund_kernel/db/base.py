"""
Module: fund_kernel.db.base
Responsibility: Declarative bases for every ORM model: the UUID primary key,
    the column type for each Python annotation, constraint naming, and the
    audit columns shared by records people create and edit.
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    MUST NOT import from models/, services/, selectors/ or domain/.

Column conventions:
    - ``id`` is a uuid4 stored as String(36) so the schema is identical on
      PostgreSQL and SQLite.
    - ``Decimal`` annotations become Numeric(18, 2).  Amounts are rupees
      with two decimal places; floats never reach a money column.
    - Unnamed constraints and indexes get deterministic names from
      ``NAMING_CONVENTION`` so migrations can address them.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, MetaData, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return str(value) if value is not None else None

    def process_result_value(self, value, dialect):
        return PyUUID(value) if value is not None else None


class Base(DeclarativeBase):
    """
    Root of every model.  Subclasses get ``id`` and the annotation map below;
    an annotation such as ``Mapped[Decimal]`` needs no explicit column type.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        date: Date,
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
    Base for records a user creates and later edits (allocations, ledger
    entries, expenses, bills, contracts).

    ``created_at``/``updated_at`` come from the database clock.  Business
    dates (allocation_date, transaction_date, paid_date) are separate
    columns stamped from the injected Clock.  ``created_by_id`` is the
    spender for wallet purposes and is always required.
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
