from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import structlog
from sqlalchemy import JSON, DateTime, String, create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from stackwise.core.errors import ConcurrentModification, StateStoreError
from stackwise.state.models import AppliedState

logger = structlog.get_logger()

LOCK_ID = "apply"


class Base(DeclarativeBase):
    pass


class AppliedStateRecord(Base):
    __tablename__ = "applied_states"

    resource_group_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    inputs_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    outputs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    dependencies: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class StateLockRecord(Base):
    __tablename__ = "state_locks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    owner: Mapped[str] = mapped_column(String(255), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SQLStateStore:
    """Relational state store; each ``put`` is a single-row upsert in its own transaction."""

    def __init__(self, database_url: str | None = None, *, engine: Engine | None = None) -> None:
        if engine is None:
            if database_url is None:
                raise ValueError("database_url or engine is required")
            engine = create_engine(database_url, future=True)
        self._engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            raise StateStoreError(f"Failed to initialise state database: {e}") from e

    def get(self, name: str) -> AppliedState | None:
        try:
            with self._session_factory() as session:
                record = session.get(AppliedStateRecord, name)
                return _to_state(record) if record else None
        except SQLAlchemyError as e:
            raise StateStoreError(f"Failed to read state for '{name}': {e}") from e

    def put(self, state: AppliedState) -> None:
        record = AppliedStateRecord(
            resource_group_name=state.resource_group_name,
            inputs_hash=state.inputs_hash,
            outputs=dict(state.outputs),
            dependencies=list(state.dependencies),
            applied_at=state.applied_at,
        )
        try:
            with self._session_factory.begin() as session:
                session.merge(record)
        except SQLAlchemyError as e:
            raise StateStoreError(
                f"Failed to write state for '{state.resource_group_name}': {e}"
            ) from e

    def delete(self, name: str) -> None:
        try:
            with self._session_factory.begin() as session:
                session.execute(
                    delete(AppliedStateRecord).where(AppliedStateRecord.resource_group_name == name)
                )
        except SQLAlchemyError as e:
            raise StateStoreError(f"Failed to delete state for '{name}': {e}") from e

    def list(self) -> list[AppliedState]:
        stmt = select(AppliedStateRecord).order_by(AppliedStateRecord.resource_group_name)
        try:
            with self._session_factory() as session:
                return [_to_state(record) for record in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise StateStoreError(f"Failed to list state: {e}") from e

    @contextmanager
    def lock(self, owner: str) -> Iterator[None]:
        try:
            with self._session_factory.begin() as session:
                session.add(
                    StateLockRecord(id=LOCK_ID, owner=owner, acquired_at=datetime.now(timezone.utc))
                )
        except IntegrityError as e:
            raise ConcurrentModification(
                "Another apply run holds the state lock",
                {"holder": self.lock_holder(), "owner": owner},
            ) from e

        try:
            yield
        finally:
            self.force_unlock()

    def lock_holder(self) -> str | None:
        with self._session_factory() as session:
            record = session.get(StateLockRecord, LOCK_ID)
            return record.owner if record else None

    def force_unlock(self) -> bool:
        with self._session_factory.begin() as session:
            result = session.execute(delete(StateLockRecord).where(StateLockRecord.id == LOCK_ID))
        return bool(result.rowcount)  # type: ignore[attr-defined]


def _to_state(record: AppliedStateRecord) -> AppliedState:
    applied_at = record.applied_at
    if applied_at.tzinfo is None:
        # sqlite drops the offset; values are always written in UTC
        applied_at = applied_at.replace(tzinfo=timezone.utc)
    return AppliedState(
        resource_group_name=record.resource_group_name,
        inputs_hash=record.inputs_hash,
        outputs=dict(record.outputs or {}),
        applied_at=applied_at,
        dependencies=tuple(record.dependencies or ()),
    )
