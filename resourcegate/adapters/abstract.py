from typing import Any, ClassVar, Optional

from resourcegate.adapters.errors import AdapterMissing


class AbstractAdapter:
    """Base class of the data adapters through which resources are found and built.

    Subclasses register themselves when they are defined. For a given model class, the most recently defined adapter
    whose ``for_class`` returns ``True`` is used; the adapter defined with ``fallback=True`` is used if none does::

        class DocumentAdapter(AbstractAdapter):
            @classmethod
            def for_class(cls, model_class):
                return issubclass(model_class, Document)

            def find(self, base, id):
                ...
    """

    _adapters: ClassVar[list[type["AbstractAdapter"]]] = []
    _fallback: ClassVar[Optional[type["AbstractAdapter"]]] = None

    def __init_subclass__(cls, fallback: bool = False, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        if fallback:
            AbstractAdapter._fallback = cls
        else:
            AbstractAdapter._adapters.append(cls)

    @classmethod
    def for_class(cls, model_class: Any) -> bool:
        return False

    @classmethod
    def adapter_class(cls, model_class: Any) -> type["AbstractAdapter"]:
        for adapter in reversed(AbstractAdapter._adapters):
            if adapter.for_class(model_class):
                return adapter

        if not AbstractAdapter._fallback:
            raise AdapterMissing(f"no data adapter is available for {model_class!r}")

        return AbstractAdapter._fallback

    @classmethod
    def adapter_for(cls, model_class: Any) -> "AbstractAdapter":
        return cls.adapter_class(model_class)(model_class)

    def __init__(self, model_class: Any) -> None:
        self.model_class = model_class

    def find(self, base: Any, id: str) -> Any:
        """Finds the entity with the given id within ``base`` (the model class or a collection scoped by a parent).

        :raises: :class:`RecordNotFound`: no such entity exists
        """
        raise NotImplementedError(f"{self.__class__.__name__} does not implement find()")

    def build(self, base: Any, attributes: dict[str, Any]) -> Any:
        """Builds a new, unsaved entity from ``attributes``. Entities built from a collection scoped by a parent are
        added to that collection.
        """
        if isinstance(base, type):
            return base(**attributes)

        if callable(getattr(base, "build", None)):
            return base.build(**attributes)

        instance = self.model_class(**attributes)
        base.append(instance)
        return instance
