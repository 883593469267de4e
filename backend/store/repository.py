# store/repository.py
"""
Transactional repository.

Every write to users, roles, companies and memberships goes through
run_transaction(). A caller describes the write as an ordered plan of
steps; the plan runs inside one transaction.atomic() block and either
commits completely or not at all.

    result = run_transaction([
        Create("user", User, {"email": email, "password": password_hash}),
        Create("role", UserRole, {"user": Ref("user"), "name": Role.STAFF}),
        Create("membership", CompanyMembership, {"user": Ref("user"), "company": company}),
    ])
    result["user"], result["membership"]

Steps:
- Create: insert one row.
- Ensure: get-or-create by lookup; safe to repeat.
- Update: load one row by lookup (locked), set values, save.
- Delete: delete exactly one row by lookup.
- DeleteWhere: delete every row matching the lookup (zero is fine).

Values and lookups may reference earlier results with Ref(key) or
Ref(key, "attr").

Uniqueness:
Services run validators before building a plan, but those checks only
read the store and two concurrent requests can both pass them. The
unique constraints in the schema are what actually decide; a violation
raised by the database surfaces here as ConflictError, listing the
offending fields.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Type

from django.db import IntegrityError, models, transaction

from common.errors import ConflictError, InternalError, NotFoundError
from store.write_barrier import repository_writes_allowed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ref:
    """Points at the result of an earlier step in the same plan."""
    key: str
    attr: Optional[str] = None


@dataclass
class Create:
    key: str
    model: Type[models.Model]
    values: Dict[str, Any]


@dataclass
class Ensure:
    key: str
    model: Type[models.Model]
    lookup: Dict[str, Any]
    defaults: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Update:
    key: str
    model: Type[models.Model]
    lookup: Dict[str, Any]
    values: Dict[str, Any]


@dataclass
class Delete:
    key: str
    model: Type[models.Model]
    lookup: Dict[str, Any]


@dataclass
class DeleteWhere:
    key: str
    model: Type[models.Model]
    lookup: Dict[str, Any]


Step = Create | Ensure | Update | Delete | DeleteWhere


@dataclass
class CommittedResult:
    entities: Dict[str, Any] = field(default_factory=dict)
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    deleted: Dict[str, int] = field(default_factory=dict)

    def __getitem__(self, key: str):
        return self.entities[key]

    def get(self, key: str, default=None):
        return self.entities.get(key, default)

    def was_created(self, key: str) -> bool:
        return key in self.created


def run_transaction(steps: Sequence[Step]) -> CommittedResult:
    """
    Execute a write plan atomically.

    Returns:
        CommittedResult with every step's entity keyed by step key
        (deleted rows map to the number of rows removed).

    Raises:
        ConflictError: a unique constraint rejected a write
        NotFoundError: Update/Delete found no row
        InternalError: any other integrity failure
    Nothing from the plan is persisted when an error is raised.
    """
    keys = [step.key for step in steps]
    if len(keys) != len(set(keys)):
        raise ValueError(f"Duplicate step keys in plan: {keys}")

    result = CommittedResult()
    with transaction.atomic(), repository_writes_allowed():
        for step in steps:
            try:
                _apply(step, result)
            except IntegrityError as exc:
                raise _integrity_to_error(step.model, exc) from exc
            except step.model.DoesNotExist as exc:
                raise NotFoundError(f"{_label(step.model)} not found") from exc

    logger.debug(
        "transaction_committed",
        extra={"created": result.created, "updated": result.updated, "deleted": result.deleted},
    )
    return result


def _apply(step: Step, result: CommittedResult) -> None:
    manager = step.model._default_manager

    if isinstance(step, Create):
        instance = step.model(**_resolve(step.values, result))
        instance.save(force_insert=True)
        result.entities[step.key] = instance
        result.created.append(step.key)

    elif isinstance(step, Ensure):
        instance, created = manager.get_or_create(
            defaults=_resolve(step.defaults, result),
            **_resolve(step.lookup, result),
        )
        result.entities[step.key] = instance
        if created:
            result.created.append(step.key)

    elif isinstance(step, Update):
        instance = manager.select_for_update().get(**_resolve(step.lookup, result))
        for name, value in _resolve(step.values, result).items():
            setattr(instance, name, value)
        instance.save()
        result.entities[step.key] = instance
        result.updated.append(step.key)

    elif isinstance(step, Delete):
        instance = manager.get(**_resolve(step.lookup, result))
        instance.delete()
        result.entities[step.key] = instance
        result.deleted[step.key] = 1

    elif isinstance(step, DeleteWhere):
        count, _ = manager.filter(**_resolve(step.lookup, result)).delete()
        result.entities[step.key] = count
        result.deleted[step.key] = count

    else:
        raise TypeError(f"Unknown step type: {type(step).__name__}")


def _resolve(values: Dict[str, Any], result: CommittedResult) -> Dict[str, Any]:
    resolved = {}
    for name, value in values.items():
        if isinstance(value, Ref):
            target = result.entities[value.key]
            value = getattr(target, value.attr) if value.attr else target
        resolved[name] = value
    return resolved


def _label(model) -> str:
    return str(model._meta.verbose_name).capitalize()


_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<cols>.+)$")
_POSTGRES_KEY = re.compile(r"Key \((?P<cols>[^)]+)\)=")
_CONSTRAINT_NAME = re.compile(r'unique constraint "(?P<name>[^"]+)"')


def _integrity_to_error(model, exc: IntegrityError) -> Exception:
    message = str(exc)
    columns = _unique_columns(model, message)
    if columns is None:
        logger.error("integrity_error", extra={"model": model.__name__, "error": message})
        return InternalError("Data integrity error")

    fields = _columns_to_fields(model, columns)
    logger.info("unique_conflict", extra={"model": model.__name__, "fields": fields})
    if not fields:
        return ConflictError(f"{_label(model)} already exists")
    return ConflictError(f"{_label(model)} with this {', '.join(fields)} already exists", fields=fields)


def _unique_columns(model, message: str) -> Optional[List[str]]:
    match = _SQLITE_UNIQUE.search(message)
    if match:
        return [col.strip().split(".")[-1] for col in match.group("cols").split(",")]

    match = _POSTGRES_KEY.search(message)
    if match:
        return [col.strip() for col in match.group("cols").split(",")]

    match = _CONSTRAINT_NAME.search(message)
    if match:
        for constraint in model._meta.constraints:
            if constraint.name == match.group("name"):
                return list(constraint.fields)
        return []

    if "unique" in message.lower() or "duplicate" in message.lower():
        return []
    return None


def _columns_to_fields(model, columns: List[str]) -> List[str]:
    by_column = {f.column: f.name for f in model._meta.concrete_fields}
    return [by_column.get(col, col) for col in columns]
