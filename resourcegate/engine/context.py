from abc import ABC, abstractmethod
from operator import attrgetter
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping, Optional

if TYPE_CHECKING:
    from resourcegate.engine.skip import SkipPolicyStore
    from resourcegate.policy.provider import AuthorizationPolicy


def _defined_by_resourcegate(cls: type, name: str) -> bool:
    for klass in cls.__mro__:
        if name in vars(klass):
            return klass.__module__.partition(".")[0] == "resourcegate"

    return False


class RequestAttributeStore:
    """Per-request cache of resolved entities, keyed by instance name (or its plural for collections).

    An entry is written once: ``fetch`` never recomputes a name already in the store, even when its value is ``None``,
    so repeated loads of the same resource within a request are no-ops.
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._values!r})"

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def fetch(self, name: str, loader: Callable[[], Any]) -> Any:
        if name not in self._values:
            self._values[name] = loader()

        return self._values[name]


class RequestContext(ABC):
    """The view of the current request that the engine works against: the action, the raw parameters, the
    controller path (which gives the namespace and the default resource name), previously resolved entities and the
    authorization policy of the current identity.

    Hosts implement the abstract members; the web ``Controller`` is the implementation used by the Tornado layer.
    """

    @property
    @abstractmethod
    def action(self) -> str:
        pass

    @property
    @abstractmethod
    def params(self) -> Mapping[str, Any]:
        pass

    @property
    @abstractmethod
    def controller_path(self) -> str:
        pass

    @abstractmethod
    def current_policy(self) -> "AuthorizationPolicy":
        pass

    @property
    def attributes(self) -> RequestAttributeStore:
        store = self.__dict__.get("_attributes")

        if store is None:
            store = RequestAttributeStore()
            self.__dict__["_attributes"] = store

        return store

    @property
    def skip_policies(self) -> Optional["SkipPolicyStore"]:
        return None

    @property
    def namespace(self) -> list[str]:
        return self.controller_path.split("/")[:-1]

    def get_attribute(self, name: str) -> Any:
        return self.attributes.get(name)

    def set_attribute(self, name: str, value: Any) -> None:
        self.attributes.set(name, value)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def responds_to(self, name: str) -> bool:
        """Whether the host provides a method ``name``. Methods which resourcegate's own base classes define (such as
        ``get_params`` on the web ``Controller``) are left out unless the host overrides them.
        """
        if _defined_by_resourcegate(type(self), name):
            return False

        return callable(getattr(self, name, None))

    def invoke(self, name: str, *args: Any) -> Any:
        return getattr(self, name)(*args)

    def evaluate(self, expression: str) -> Any:
        """Evaluates a dotted attribute path (e.g. ``"forms.widget"``) against the context, calling the final value
        if it is callable.
        """
        value = attrgetter(expression)(self)
        return value() if callable(value) else value
