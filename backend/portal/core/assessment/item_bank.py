"""
Read-only index over the psychometric item pool.

Items are grouped by the MBTI dimension they measure and kept in a stable
order (difficulty ascending, then id). The index is built once at startup and
shared across sessions without locking; it exposes no mutation API.

Each item is keyed toward one pole of its dimension. An item keyed toward the
dimension's first pole sits at ``difficulty`` on the theta axis; a
reverse-keyed item sits at ``-difficulty``, so the estimator and selector can
work in a single orientation where positive theta favors the first pole.
"""

import json
import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from libs.domain_types import Dimension

from portal.core.assessment.exceptions import ConfigurationError, ItemNotFoundError

logger = logging.getLogger(__name__)

# Fewer items than this in a dimension cannot converge reliably.
DEFAULT_MIN_ITEMS_PER_DIMENSION = 5

DEFAULT_ITEM_BANK_RESOURCE = "mbti_items.json"

_REQUIRED_FIELDS = ("id", "dimension", "pole", "difficulty", "discrimination", "text")


@dataclass(frozen=True)
class PsychometricItem:
    """A single calibrated test statement bound to one dimension."""

    id: str
    dimension: Dimension
    pole: str  # Pole the statement leans toward
    difficulty: float  # b parameter
    discrimination: float  # a parameter
    text: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def direction(self) -> int:
        """+1 when keyed toward the dimension's first pole, -1 otherwise."""
        return 1 if self.pole == self.dimension.first_pole else -1

    @property
    def location(self) -> float:
        """Item position on the dimension's theta axis."""
        return self.direction * self.difficulty


class ItemBank:
    """
    Immutable per-dimension index of psychometric items.

    Args:
        items: The full item pool.
        dimensions: Dimensions that must be provisioned (defaults to all four).
        min_items_per_dimension: Minimum items each dimension must hold.

    Raises:
        ConfigurationError: On duplicate ids, invalid item parameters, or an
            under-provisioned dimension.
    """

    def __init__(
        self,
        items: Iterable[PsychometricItem],
        dimensions: Sequence[Dimension] = tuple(Dimension),
        min_items_per_dimension: int = DEFAULT_MIN_ITEMS_PER_DIMENSION,
    ):
        by_id: Dict[str, PsychometricItem] = {}
        grouped: Dict[Dimension, List[PsychometricItem]] = {d: [] for d in Dimension}

        for item in items:
            _validate_item(item)
            if item.id in by_id:
                raise ConfigurationError(
                    "Duplicate item id in item bank", context={"item_id": item.id}
                )
            by_id[item.id] = item
            grouped[item.dimension].append(item)

        for dimension in dimensions:
            count = len(grouped[dimension])
            if count < min_items_per_dimension:
                raise ConfigurationError(
                    "Item bank is under-provisioned for dimension",
                    context={
                        "dimension": dimension.value,
                        "items": count,
                        "required": min_items_per_dimension,
                    },
                )

        self._items = by_id
        self._by_dimension: Dict[Dimension, Tuple[PsychometricItem, ...]] = {
            dimension: tuple(sorted(pool, key=lambda i: (i.difficulty, i.id)))
            for dimension, pool in grouped.items()
        }
        self._dimensions = tuple(dimensions)

        logger.info(
            f"Item bank loaded: {len(by_id)} items "
            + ", ".join(
                f"{d.value}={len(self._by_dimension[d])}" for d in self._dimensions
            )
        )

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        dimensions: Sequence[Dimension] = tuple(Dimension),
        min_items_per_dimension: int = DEFAULT_MIN_ITEMS_PER_DIMENSION,
    ) -> "ItemBank":
        """Build an item bank from plain ``{id, dimension, pole, ...}`` records."""
        items = [
            _item_from_record(record, index) for index, record in enumerate(records)
        ]
        return cls(
            items,
            dimensions=dimensions,
            min_items_per_dimension=min_items_per_dimension,
        )

    @property
    def dimensions(self) -> Tuple[Dimension, ...]:
        return self._dimensions

    def items_for_dimension(self, dimension: Dimension) -> Tuple[PsychometricItem, ...]:
        """Return the items measuring ``dimension``, difficulty ascending."""
        return self._by_dimension[dimension]

    def item(self, item_id: str) -> PsychometricItem:
        """
        Look up an item by id.

        Raises:
            ItemNotFoundError: If the id is not in the bank.
        """
        try:
            return self._items[item_id]
        except KeyError:
            raise ItemNotFoundError(
                "Item not found in item bank", context={"item_id": item_id}
            ) from None

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[PsychometricItem]:
        return iter(self._items.values())


def load_item_bank(
    path: Optional[str] = None,
    dimensions: Sequence[Dimension] = tuple(Dimension),
    min_items_per_dimension: int = DEFAULT_MIN_ITEMS_PER_DIMENSION,
) -> ItemBank:
    """
    Load an item bank from a JSON document of the form ``{"items": [...]}``.

    Args:
        path: Filesystem path to the document. When omitted, the packaged
            default MBTI bank is used.
        dimensions: Dimensions that must be provisioned.
        min_items_per_dimension: Minimum items each dimension must hold.

    Raises:
        ConfigurationError: If the document cannot be read or is malformed.
    """
    try:
        if path:
            raw = Path(path).read_text(encoding="utf-8")
        else:
            raw = (
                resources.files("portal.core.assessment")
                .joinpath("data", DEFAULT_ITEM_BANK_RESOURCE)
                .read_text(encoding="utf-8")
            )
        document = json.loads(raw)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            "Failed to read item bank",
            context={"path": path or DEFAULT_ITEM_BANK_RESOURCE, "error": str(e)},
        ) from e

    records = document.get("items") if isinstance(document, dict) else None
    if not isinstance(records, list):
        raise ConfigurationError(
            "Item bank document must contain an 'items' list",
            context={"path": path or DEFAULT_ITEM_BANK_RESOURCE},
        )

    return ItemBank.from_records(
        records,
        dimensions=dimensions,
        min_items_per_dimension=min_items_per_dimension,
    )


def _item_from_record(record: Mapping[str, Any], index: int) -> PsychometricItem:
    missing = [name for name in _REQUIRED_FIELDS if name not in record]
    if missing:
        raise ConfigurationError(
            "Item record is missing required fields",
            context={"index": index, "missing": missing},
        )
    try:
        dimension = Dimension(record["dimension"])
    except ValueError:
        raise ConfigurationError(
            "Item record has an unknown dimension",
            context={"index": index, "dimension": record["dimension"]},
        ) from None
    try:
        difficulty = float(record["difficulty"])
        discrimination = float(record["discrimination"])
    except (TypeError, ValueError):
        raise ConfigurationError(
            "Item record has non-numeric IRT parameters",
            context={"index": index, "item_id": record["id"]},
        ) from None

    return PsychometricItem(
        id=str(record["id"]),
        dimension=dimension,
        pole=str(record["pole"]),
        difficulty=difficulty,
        discrimination=discrimination,
        text=str(record["text"]),
        metadata=dict(record.get("metadata") or {}),
    )


def _validate_item(item: PsychometricItem) -> None:
    if item.discrimination <= 0:
        raise ConfigurationError(
            "Item discrimination must be positive",
            context={"item_id": item.id, "discrimination": item.discrimination},
        )
    if not item.dimension.has_pole(item.pole):
        raise ConfigurationError(
            "Item pole does not belong to its dimension",
            context={
                "item_id": item.id,
                "pole": item.pole,
                "dimension": item.dimension.value,
            },
        )
