from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Union

from resourcegate.engine.errors import ConfigurationError, ImplementationRemoved


class _NoClass:
    """Marker for a resource which has no class to load through and is only ever authorized by name."""

    _instance = None

    def __new__(cls) -> "_NoClass":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_CLASS"

    def __bool__(self) -> bool:
        return False


NO_CLASS = _NoClass()


class ParamExpression(str):
    """A ``param_method`` given as an expression to be evaluated against the request context (by calling
    ``context.evaluate``) instead of as the name of a method to invoke.
    """


ParamMethod = Union[str, ParamExpression, Callable[[Any], Any]]

# Options which have been removed, mapped to the message explaining what to use instead
REMOVED_OPTIONS = {
    "nested": "instead use 'through' with a separate load/authorize declaration.",
    "name": "instead pass the name as the first argument.",
    "resource": "it has been renamed back to 'class_' (use NO_CLASS if there is no class).",
}

OPTION_KEYS = frozenset(
    {
        "class_",
        "through",
        "through_association",
        "singleton",
        "shallow",
        "parent",
        "id_param",
        "find_by",
        "param_method",
        "instance_name",
        "parent_action",
        "collection",
        "new",
    }
)

SAVE_ACTIONS = frozenset({"create", "update"})


def _as_tuple(value: Optional[Union[str, Iterable[str]]]) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


@dataclass(frozen=True)
class ResourceDescriptor:
    """The declared options of a single resource, as given to ``load_and_authorize_resource`` and friends.

    Use ``ResourceDescriptor.from_options`` to build a descriptor from keyword options: it rejects removed and unknown
    options so that misconfiguration is detected when the declaration is made instead of in the middle of a request.
    """

    name: Optional[str] = None
    class_override: Any = None
    through: tuple[str, ...] = ()
    through_association: Optional[str] = None
    singleton: bool = False
    shallow: bool = False
    parent: Optional[bool] = None
    id_param: Optional[str] = None
    find_by: Optional[str] = None
    param_method: Optional[ParamMethod] = None
    instance_name: Optional[str] = None
    parent_action: str = "show"
    collection: frozenset[str] = frozenset()
    new: frozenset[str] = frozenset()

    @classmethod
    def from_options(cls, name: Optional[str] = None, /, **options: Any) -> "ResourceDescriptor":
        """
        :raises: :class:`ImplementationRemoved`: a removed option is given
        :raises: :class:`ConfigurationError`: an unknown option is given
        """
        for option, replacement in REMOVED_OPTIONS.items():
            if options.get(option):
                raise ImplementationRemoved(option, replacement)

        # Allow the Ruby-style spelling when options are passed as a dict
        if "class" in options:
            options["class_"] = options.pop("class")

        unknown = sorted(set(options) - OPTION_KEYS - set(REMOVED_OPTIONS))

        if unknown:
            raise ConfigurationError(f"unsupported resource option(s): {', '.join(unknown)}")

        return cls(
            name=str(name) if name is not None else None,
            class_override=options.get("class_"),
            through=_as_tuple(options.get("through")),
            through_association=options.get("through_association"),
            singleton=bool(options.get("singleton", False)),
            shallow=bool(options.get("shallow", False)),
            parent=options.get("parent"),
            id_param=options.get("id_param"),
            find_by=options.get("find_by"),
            param_method=options.get("param_method") or None,
            instance_name=options.get("instance_name"),
            parent_action=options.get("parent_action") or "show",
            collection=frozenset(_as_tuple(options.get("collection"))),
            new=frozenset(_as_tuple(options.get("new"))),
        )

    @property
    def collection_actions(self) -> frozenset[str]:
        return frozenset({"index"}) | self.collection

    @property
    def new_actions(self) -> frozenset[str]:
        return frozenset({"new", "create"}) | self.new
