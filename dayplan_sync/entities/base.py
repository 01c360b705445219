"""
Entity mapping interface shared by every synchronized entity kind.

The sync engine is generic; everything it needs to know about a concrete
entity kind (schedule items, pool tasks) goes through an EntityMapping:
- identifier and sort-key extraction
- row <-> entity conversion for the hosted store
- draft construction and patch application

Invariants:
    - Entities are immutable; patches produce new instances
    - sort_key() returns a totally ordered value
    - Patches may never change ``id`` or ``owner_id``

How to change safely:
    - New entity kinds implement EntityMapping and get their own module
    - Keep row column names in the mapping, never in the engine
"""

from __future__ import annotations

import dataclasses
import difflib
import uuid
from typing import (
    Any,
    Dict,
    Generic,
    Iterable,
    Mapping,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
    runtime_checkable,
)

from ..errors import (
    ChangeNormalizationError,
    UnknownFieldError,
    UnsupportedOperationError,
    ValidationError,
)

TEMP_ID_PREFIX = "temp-"

IMMUTABLE_FIELDS = frozenset({"id", "owner_id"})

E = TypeVar("E")


def make_temporary_id() -> str:
    """Create a client-side placeholder identifier."""
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


def is_temporary_id(entity_id: str) -> bool:
    return entity_id.startswith(TEMP_ID_PREFIX)


@runtime_checkable
class EntityMapping(Protocol[E]):
    """Everything the engine needs to know about one entity kind."""

    kind: str
    positional: bool
    default_order: Tuple[Tuple[str, bool], ...]

    def entity_id(self, entity: E) -> str: ...

    def sort_key(self, entity: E) -> Any: ...

    def from_row(self, row: Mapping[str, Any]) -> E: ...

    def to_insert_row(self, entity: E, owner_id: str) -> Dict[str, Any]: ...

    def patch_to_row(self, patch: Mapping[str, Any]) -> Dict[str, Any]: ...

    def apply_patch(self, entity: E, patch: Mapping[str, Any]) -> E: ...

    def with_id(self, entity: E, entity_id: str) -> E: ...

    def build_draft(
        self,
        draft: Mapping[str, Any],
        owner_id: str,
        temp_id: str,
        snapshot: Sequence[E],
    ) -> E: ...

    def with_position(self, entity: E, position: int) -> E: ...

    def default_filters(self, **options: Any) -> Dict[str, Any]: ...


class DataclassMapping(Generic[E]):
    """Common behaviour for mappings over frozen dataclasses.

    Subclasses set ``entity_type``, ``kind`` and implement the row
    conversions plus ``sort_key``.
    """

    entity_type: type
    kind: str = ""
    positional: bool = False
    default_order: Tuple[Tuple[str, bool], ...] = ()

    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(self.entity_type))

    def entity_id(self, entity: E) -> str:
        return entity.id  # type: ignore[attr-defined]

    def check_fields(self, names: Iterable[str]) -> None:
        """Raise UnknownFieldError for the first name this kind lacks."""
        known = self.field_names()
        for name in names:
            if name not in known:
                suggestions = difflib.get_close_matches(name, known, n=3)
                raise UnknownFieldError(name, self.kind, suggestions)

    def apply_patch(self, entity: E, patch: Mapping[str, Any]) -> E:
        self.check_fields(patch.keys())
        frozen = IMMUTABLE_FIELDS.intersection(patch.keys())
        if frozen:
            name = sorted(frozen)[0]
            raise ValidationError(f"Field '{name}' cannot be patched", field_name=name)
        return dataclasses.replace(entity, **self.coerce_patch(patch))  # type: ignore[type-var]

    def coerce_patch(self, patch: Mapping[str, Any]) -> Dict[str, Any]:
        """Convert patch values to the entity's field types (hook)."""
        return dict(patch)

    def with_id(self, entity: E, entity_id: str) -> E:
        return dataclasses.replace(entity, id=entity_id)  # type: ignore[type-var]

    def with_position(self, entity: E, position: int) -> E:
        raise UnsupportedOperationError("reorder", self.kind)

    def default_filters(self, **options: Any) -> Dict[str, Any]:
        return {}


def require(row: Mapping[str, Any], *keys: str, table: str) -> None:
    """Check that a store row carries the given columns."""
    missing = [k for k in keys if row.get(k) is None]
    if missing:
        raise ChangeNormalizationError(f"Row is missing columns: {missing}", table=table)


def coerce_enum(enum_type: type, value: Any, field_name: str) -> Any:
    """Turn a raw value into a member of ``enum_type``."""
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        allowed = [m.value for m in enum_type]  # type: ignore[attr-defined]
        raise ValidationError(
            f"Invalid {field_name} '{value}'. Must be one of: {allowed}",
            field_name=field_name,
        ) from None
