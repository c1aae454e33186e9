"""Append-only arena of every variant a search generated."""

from typing import Any, Dict, List, Optional, Tuple

from .models import Variant


class VariantArena:
    """
    Variants indexed by insertion position.

    Each entry stores the index of its parent instead of a reference, so the
    lineage is a flat list that serializes without cycles.
    """

    def __init__(self):
        self._entries: List[Tuple[Variant, Optional[int]]] = []
        self._index: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, variant_id: str) -> bool:
        return variant_id in self._index

    def add(self, variant: Variant) -> int:
        """
        Append a variant.

        Args:
            variant: Variant whose ``parent_id`` (if any) is already in the arena

        Returns:
            Index of the new entry

        Raises:
            ValueError: on a duplicate id or an unknown parent
        """
        if variant.id in self._index:
            raise ValueError(f"Variant {variant.id!r} already recorded")
        parent_index = None
        if variant.parent_id is not None:
            if variant.parent_id not in self._index:
                raise ValueError(f"Variant {variant.id!r} has unknown parent {variant.parent_id!r}")
            parent_index = self._index[variant.parent_id]

        index = len(self._entries)
        self._entries.append((variant, parent_index))
        self._index[variant.id] = index
        return index

    def get(self, variant_id: str) -> Optional[Variant]:
        index = self._index.get(variant_id)
        return None if index is None else self._entries[index][0]

    def parent_of(self, variant_id: str) -> Optional[Variant]:
        index = self._index.get(variant_id)
        if index is None:
            return None
        parent_index = self._entries[index][1]
        return None if parent_index is None else self._entries[parent_index][0]

    def ancestry(self, variant_id: str) -> List[Variant]:
        """Path from the root to ``variant_id``, root first; empty if unknown."""
        path = []
        index = self._index.get(variant_id)
        while index is not None:
            variant, index = self._entries[index]
            path.append(variant)
        path.reverse()
        return path

    def variants(self) -> List[Variant]:
        return [variant for variant, _ in self._entries]

    def to_dict(self) -> List[Dict[str, Any]]:
        return [
            {
                "index": i,
                "id": variant.id,
                "parent_index": parent_index,
                "applied_operator": variant.applied_operator.value if variant.applied_operator else None,
                "generation": variant.generation,
                "weighted": variant.score.weighted,
            }
            for i, (variant, parent_index) in enumerate(self._entries)
        ]
