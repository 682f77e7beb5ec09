import random as _random
from collections.abc import Iterable, Mapping, MutableSequence
from typing import Any, Callable, Optional

from models.document import METADATA_KEY
from utils.errors import MultipleResultsError

Predicate = Callable[[Any], bool]


def _field_value(element: Any, name: str) -> Any:
    if isinstance(element, Mapping):
        return element.get(name)
    return getattr(element, name, None)


def _element_id(element: Any) -> Optional[str]:
    metadata = _field_value(element, METADATA_KEY)
    if metadata is None:
        return None
    return _field_value(metadata, "id") or _field_value(metadata, "@id")


class Queryable(MutableSequence):
    """Ordered, in-memory collection of documents with LINQ-style operators.

    Every transforming operator (``where``, ``select``, ``order_by``) returns
    a new Queryable and leaves its source untouched, so chains keep the full
    operator set. Accessors that find nothing return None instead of raising.
    """

    def __init__(self, documents: Optional[Iterable[Any]] = None):
        self._items = list(documents) if documents is not None else []

    # ------------------------------------------------------------------
    # Sequence protocol
    # ------------------------------------------------------------------

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Queryable(self._items[index])
        return self._items[index]

    def __setitem__(self, index, value):
        self._items[index] = value

    def __delitem__(self, index):
        del self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def insert(self, index: int, value: Any) -> None:
        self._items.insert(index, value)

    def __eq__(self, other):
        if isinstance(other, Queryable):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return self._items == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Queryable({self._items!r})"

    # ------------------------------------------------------------------
    # Quantifiers
    # ------------------------------------------------------------------

    def all(self, predicate: Predicate) -> bool:
        return all(predicate(item) for item in self._items)

    def any(self, predicate: Optional[Predicate] = None) -> bool:
        if predicate is None:
            return not self.empty()
        return any(predicate(item) for item in self._items)

    def exists(self, predicate: Predicate) -> bool:
        return self.any(predicate)

    def count(self, predicate: Optional[Predicate] = None) -> int:
        return len(self.where(predicate) if predicate else self)

    def empty(self) -> bool:
        return len(self._items) == 0

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    def element_at(self, index: int) -> Any:
        if 0 <= index < len(self._items):
            return self._items[index]
        return None

    def first(self, predicate: Optional[Predicate] = None) -> Any:
        source = self.where(predicate) if predicate else self
        return source.element_at(0)

    def last(self, predicate: Optional[Predicate] = None) -> Any:
        source = self.where(predicate) if predicate else self
        return source.element_at(len(source) - 1)

    def random(self, predicate: Optional[Predicate] = None) -> Any:
        """Pick one element uniformly, optionally among those matching ``predicate``."""
        source = self.where(predicate) if predicate else self
        if source.empty():
            return None
        return _random.choice(source._items)

    def single(self, predicate: Optional[Predicate] = None) -> Any:
        """Return the only element matching ``predicate``.

        Returns None when nothing matches.

        Raises:
            MultipleResultsError: More than one element matches
        """
        matches = self.where(predicate) if predicate else self
        if len(matches) > 1:
            raise MultipleResultsError()
        return matches.element_at(0)

    def with_id(self, identifier: str) -> Any:
        """Return the document whose metadata carries ``identifier``, or None."""
        return self.single(lambda document: _element_id(document) == identifier)

    # ------------------------------------------------------------------
    # Transforming operators
    # ------------------------------------------------------------------

    def where(self, predicate: Predicate) -> "Queryable":
        return Queryable(item for item in self._items if predicate(item))

    def select(self, projection) -> "Queryable":
        """Project every element to a named field or through a function.

        Args:
            projection: Field name, or a callable applied to each element

        Raises:
            TypeError: ``projection`` is neither a string nor callable
        """
        if isinstance(projection, str):
            return Queryable(_field_value(item, projection) for item in self._items)
        if callable(projection):
            return Queryable(projection(item) for item in self._items)
        raise TypeError(f"select expects a field name or a callable, got {type(projection).__name__}")

    def order_by(self, field: str) -> "Queryable":
        """Stable ascending sort on a named field; missing or None values sort first."""
        if not isinstance(field, str):
            raise TypeError(f"order_by expects a field name, got {type(field).__name__}")

        def sort_key(item):
            value = _field_value(item, field)
            return (True, value) if value is not None else (False, 0)

        return Queryable(sorted(self._items, key=sort_key))
