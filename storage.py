"""Persistence strategies for the four record tables.

Every backend honours the same contract: ``list`` returns every record of a
type, ``upsert`` creates or replaces a record by ``id``, ``delete`` and
``delete_many`` remove records by ``id`` and ``initialize_schema`` creates the
tables when they are missing. A backend without a configured connection raises
:class:`NotConnectedError` from every operation; callers decide whether that
degrades to an empty read or surfaces to the user.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import Settings, get_settings
from database import Base, get_engine, session_scope
from models import Employee, FixedExpense, Supplier, Transaction
from schemas import (
    EmployeeRecord,
    FixedExpenseRecord,
    SupplierRecord,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)

NOT_CONNECTED = "DB_NOT_CONNECTED"

MODELS_BY_RECORD: dict[type[BaseModel], type[Base]] = {
    TransactionRecord: Transaction,
    EmployeeRecord: Employee,
    SupplierRecord: Supplier,
    FixedExpenseRecord: FixedExpense,
}


class NotConnectedError(RuntimeError):
    def __init__(self, message: str = NOT_CONNECTED) -> None:
        super().__init__(message)


class StoreOperationError(RuntimeError):
    pass


def _model_for(record_type: type[BaseModel]) -> type[Base]:
    try:
        return MODELS_BY_RECORD[record_type]
    except KeyError as exc:
        raise ValueError(f"Unsupported record type: {record_type.__name__}") from exc


def table_name(record_type: type[BaseModel]) -> str:
    return _model_for(record_type).__tablename__


def _sort_records(record_type: type[R], records: list[R]) -> list[R]:
    if record_type is TransactionRecord:
        return sorted(records, key=lambda r: r.date, reverse=True)
    return sorted(records, key=lambda r: r.name.lower())


class Store(ABC):
    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def list(self, record_type: type[R]) -> list[R]: ...

    @abstractmethod
    def upsert(self, record: BaseModel) -> None: ...

    @abstractmethod
    def delete_many(self, record_type: type[BaseModel], ids: Iterable[str]) -> None:
        ...

    @abstractmethod
    def initialize_schema(self) -> None: ...

    def delete(self, record_type: type[BaseModel], record_id: str) -> None:
        self.delete_many(record_type, [record_id])


class SQLStore(Store):
    """Relational store reached through SQLAlchemy (Postgres in production)."""

    def __init__(self, engine: Optional[Engine]) -> None:
        self.engine = engine
        self._factory: Optional[sessionmaker] = None
        if engine is not None:
            self._factory = sessionmaker(
                bind=engine, autoflush=False, expire_on_commit=False
            )

    def is_connected(self) -> bool:
        return self._factory is not None

    def _require_factory(self) -> sessionmaker:
        if self._factory is None:
            raise NotConnectedError()
        return self._factory

    def list(self, record_type: type[R]) -> list[R]:
        model = _model_for(record_type)
        if model is Transaction:
            stmt = select(Transaction).order_by(Transaction.date.desc())
        else:
            stmt = select(model).order_by(model.name)
        with session_scope(self._require_factory()) as session:
            rows = session.scalars(stmt).all()
            return [record_type.model_validate(row) for row in rows]

    def upsert(self, record: BaseModel) -> None:
        model = _model_for(type(record))
        with session_scope(self._require_factory()) as session:
            session.merge(model(**record.model_dump()))

    def delete_many(self, record_type: type[BaseModel], ids: Iterable[str]) -> None:
        model = _model_for(record_type)
        id_list = list(ids)
        factory = self._require_factory()
        if not id_list:
            return
        with session_scope(factory) as session:
            session.execute(delete(model).where(model.id.in_(id_list)))

    def initialize_schema(self) -> None:
        self._require_factory()
        tables = [model.__table__ for model in MODELS_BY_RECORD.values()]
        Base.metadata.create_all(self.engine, tables=tables, checkfirst=True)
        logger.info("schema_initialized: backend=sql")


class LocalStore(Store):
    """Same contract against a JSON document on local disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def is_connected(self) -> bool:
        return True

    def _load(self) -> dict[str, list[dict]]:
        if not self.path.is_file():
            return {}
        content = self.path.read_text(encoding="utf-8")
        if not content.strip():
            return {}
        return json.loads(content)

    def _dump(self, data: dict[str, list[dict]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        tmp_path.replace(self.path)

    def list(self, record_type: type[R]) -> list[R]:
        rows = self._load().get(table_name(record_type), [])
        records = [record_type.model_validate(row) for row in rows]
        return _sort_records(record_type, records)

    def upsert(self, record: BaseModel) -> None:
        key = table_name(type(record))
        data = self._load()
        rows = data.get(key, [])
        payload = record.model_dump(mode="json")
        for idx, row in enumerate(rows):
            if row.get("id") == payload["id"]:
                rows[idx] = payload
                break
        else:
            rows.append(payload)
        data[key] = rows
        self._dump(data)

    def delete_many(self, record_type: type[BaseModel], ids: Iterable[str]) -> None:
        doomed = set(ids)
        if not doomed:
            return
        key = table_name(record_type)
        data = self._load()
        data[key] = [row for row in data.get(key, []) if row.get("id") not in doomed]
        self._dump(data)

    def initialize_schema(self) -> None:
        data = self._load()
        for record_type in MODELS_BY_RECORD:
            data.setdefault(table_name(record_type), [])
        self._dump(data)
        logger.info(f"schema_initialized: backend=local path={self.path}")


def get_store(settings: Optional[Settings] = None) -> Store:
    settings = settings or get_settings()
    if settings.storage_backend == "local":
        return LocalStore(settings.local_store_path)
    return SQLStore(get_engine())
