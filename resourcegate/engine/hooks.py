from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Union

if TYPE_CHECKING:
    from resourcegate.engine.context import RequestContext

Condition = Union[str, Callable[["RequestContext"], Any], Iterable[Union[str, Callable[["RequestContext"], Any]]]]

# Maps each phase to the ControllerResource method it runs
PHASES = {
    "load": "load_resource",
    "authorize": "authorize_resource",
    "load_and_authorize": "load_and_authorize_resource",
}


def _action_set(actions: Optional[Union[str, Iterable[str]]]) -> Optional[frozenset[str]]:
    if actions is None:
        return None
    if isinstance(actions, str):
        return frozenset({actions})
    return frozenset(actions)


def evaluate_condition(context: "RequestContext", condition: Condition) -> bool:
    if isinstance(condition, str):
        return bool(context.invoke(condition))

    if callable(condition):
        return bool(condition(context))

    return all(evaluate_condition(context, item) for item in condition)


@dataclass(frozen=True)
class HookMatcher:
    """Decides whether a hook applies to a request, from its action (``only``, ``except_``) and from conditions
    (``if_``, ``unless``) given as method names on the context or as callables receiving the context.
    """

    only: Optional[frozenset[str]] = None
    except_: Optional[frozenset[str]] = None
    if_: Optional[Condition] = None
    unless: Optional[Condition] = None

    @classmethod
    def from_options(cls, options: dict[str, Any]) -> "HookMatcher":
        """Removes the matcher options from ``options`` and builds a matcher from them. ``except`` and ``if`` are
        accepted as aliases of ``except_`` and ``if_``.
        """
        except_ = options.pop("except_", None)
        except_ = options.pop("except", except_)
        if_ = options.pop("if_", None)
        if_ = options.pop("if", if_)

        return cls(
            only=_action_set(options.pop("only", None)),
            except_=_action_set(except_),
            if_=if_,
            unless=options.pop("unless", None),
        )

    def matches(self, context: "RequestContext") -> bool:
        action = context.action

        if self.only is not None and action not in self.only:
            return False

        if self.except_ is not None and action in self.except_:
            return False

        if self.if_ is not None and not evaluate_condition(context, self.if_):
            return False

        if self.unless is not None and evaluate_condition(context, self.unless):
            return False

        return True


@dataclass(frozen=True)
class HookRegistration:
    """Binds a resource declaration to a phase run before the actions of a controller."""

    phase: str
    name: Optional[str] = None
    options: dict[str, Any] = field(default_factory=dict)
    matcher: HookMatcher = field(default_factory=HookMatcher)
    prepend: bool = False

    def __post_init__(self) -> None:
        if self.phase not in PHASES:
            raise ValueError(f"hook registered for unknown phase '{self.phase}'")

    @property
    def method(self) -> str:
        return PHASES[self.phase]
