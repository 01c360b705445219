"""
Change Event Normalizer.

Turns a provider-shaped RawChange into a canonical ChangeEvent using the
entity mapping's row conversion.

Invariants:
    - Returns None when there is nothing to merge: a missing row, another
      table, another owner, or an unknown event type
    - Raises ChangeNormalizationError only for rows that are present but
      malformed
    - DELETE needs nothing but the old row's id
"""

from __future__ import annotations

import logging
from typing import Generic, Optional, TypeVar

from ..entities.base import EntityMapping
from ..errors import ChangeNormalizationError, ValidationError
from .base import ChangeEvent, ChangeKind, RawChange

logger = logging.getLogger(__name__)

E = TypeVar("E")

_KINDS = {
    "INSERT": ChangeKind.INSERT,
    "UPDATE": ChangeKind.UPDATE,
    "DELETE": ChangeKind.DELETE,
}


class ChangeNormalizer(Generic[E]):
    """Normalizes raw changes for one entity kind and one owner."""

    def __init__(self, mapping: EntityMapping[E], owner_id: str) -> None:
        self.mapping = mapping
        self.owner_id = owner_id

    def normalize(self, raw: RawChange) -> Optional[ChangeEvent[E]]:
        """Convert ``raw`` into a ChangeEvent, or None if it carries nothing to merge.

        Raises:
            ChangeNormalizationError: If the row is present but malformed
        """
        if raw.table and raw.table != self.mapping.kind:
            logger.debug(f"Ignoring change for table {raw.table}")
            return None

        kind = _KINDS.get(raw.event_type.upper())
        if kind is None:
            logger.warning(f"Ignoring change with unknown event type: {raw.event_type}")
            return None

        if kind is ChangeKind.DELETE:
            if not raw.old:
                return None
            entity_id = raw.old.get("id")
            if entity_id is None:
                raise ChangeNormalizationError("DELETE payload has no id", table=raw.table)
            if not self._owned(raw.old):
                return None
            return ChangeEvent(kind=kind, entity_id=str(entity_id))

        if not raw.new:
            return None
        if not self._owned(raw.new):
            return None

        try:
            entity = self.mapping.from_row(raw.new)
        except ChangeNormalizationError:
            raise
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise ChangeNormalizationError(
                f"Malformed {raw.event_type} payload: {e}", table=raw.table
            ) from e
        return ChangeEvent(kind=kind, entity_id=self.mapping.entity_id(entity), entity=entity)

    def _owned(self, row: dict) -> bool:
        owner = row.get("user_id")
        return owner is None or str(owner) == self.owner_id
