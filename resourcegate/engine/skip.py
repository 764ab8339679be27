from dataclasses import dataclass
from typing import Iterable, Optional, Union

BEHAVIORS = ("load", "authorize")


@dataclass(frozen=True)
class Always:
    def applies(self, action: str) -> bool:
        return True


@dataclass(frozen=True)
class OnlyIf:
    actions: frozenset[str]

    def applies(self, action: str) -> bool:
        return action in self.actions


@dataclass(frozen=True)
class ExceptIf:
    actions: frozenset[str]

    def applies(self, action: str) -> bool:
        return action not in self.actions


SkipRule = Union[Always, OnlyIf, ExceptIf]


def _action_set(actions: Union[str, Iterable[str]]) -> frozenset[str]:
    if isinstance(actions, str):
        return frozenset({actions})
    return frozenset(actions)


def rules_from_options(
    only: Optional[Union[str, Iterable[str]]] = None, except_: Optional[Union[str, Iterable[str]]] = None
) -> tuple[SkipRule, ...]:
    """Translates ``only``/``except_`` options into skip rules. Without either option, the phase is always skipped.
    When both are given, both rules are kept and either one is enough to skip.
    """
    rules: list[SkipRule] = []

    if except_ is not None:
        rules.append(ExceptIf(_action_set(except_)))

    if only is not None:
        rules.append(OnlyIf(_action_set(only)))

    return tuple(rules) or (Always(),)


def should_skip(rules: Iterable[SkipRule], action: str) -> bool:
    return any(rule.applies(action) for rule in rules)


class SkipPolicyStore:
    """Exemptions from the load and authorize phases, keyed by behavior and resource name (``None`` being the
    resource named after the controller). Populated when controllers are defined and only read while handling
    requests.
    """

    def __init__(self) -> None:
        self._rules: dict[tuple[str, Optional[str]], tuple[SkipRule, ...]] = {}

    def copy(self) -> "SkipPolicyStore":
        store = SkipPolicyStore()
        store._rules = dict(self._rules)
        return store

    def register(self, behavior: str, scope_name: Optional[str], rules: Iterable[SkipRule]) -> None:
        if behavior not in BEHAVIORS:
            raise ValueError(f"cannot register skip rule for unknown behavior '{behavior}'")

        self._rules[(behavior, scope_name)] = tuple(rules) or (Always(),)

    def rules_for(self, behavior: str, scope_name: Optional[str]) -> Optional[tuple[SkipRule, ...]]:
        return self._rules.get((behavior, scope_name))

    def skip(self, behavior: str, scope_name: Optional[str], action: str) -> bool:
        rules = self.rules_for(behavior, scope_name)

        if rules is None:
            return False

        return should_skip(rules, action)
