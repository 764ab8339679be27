from collections.abc import Iterable
from typing import Any

from resourcegate.adapters.abstract import AbstractAdapter
from resourcegate.adapters.errors import AdapterMissing
from resourcegate.engine.errors import RecordNotFound


class DefaultAdapter(AbstractAdapter, fallback=True):
    """Adapter for plain Python models. A base may offer ``find(id)``, which is trusted to raise when nothing is
    found, or ``get(id)`` (as a dict keyed by id does), which is expected to return ``None`` instead. Otherwise the
    base is searched as an iterable of entities with an ``id`` attribute.
    """

    def find(self, base: Any, id: str) -> Any:
        if callable(getattr(base, "find", None)):
            return base.find(id)

        if callable(getattr(base, "get", None)):
            entity = base.get(id)

            if entity is None:
                raise RecordNotFound(f"{self._describe(base)} with id '{id}' not found")

            return entity

        if not isinstance(base, Iterable):
            raise AdapterMissing(f"cannot find entities in {base!r}: it has no find() or get() and is not iterable")

        for entity in base:
            if str(getattr(entity, "id", None)) == id:
                return entity

        raise RecordNotFound(f"{self._describe(base)} with id '{id}' not found")

    def _describe(self, base: Any) -> str:
        return getattr(self.model_class, "__name__", None) or type(base).__name__
