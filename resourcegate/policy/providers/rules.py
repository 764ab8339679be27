"""Rule-based authorization policy for resourcegate.

Policies are written by subclassing ``RulePolicy`` and declaring rules in ``define_rules``, using the identity the
policy was created for::

    class ProjectPolicy(RulePolicy):
        def define_rules(self):
            self.can("read", Project)
            if self.identity is not None:
                self.can("manage", Project, owner_id=self.identity.id)
                self.cannot("destroy", Project, archived=True)

Rule semantics
--------------
- Later rules take precedence over earlier ones: the last rule relevant to an action and subject decides.
- The action "manage" matches every action and the subject "all" matches every subject. The aliases "read"
  (index, show), "create" (new, create) and "update" (edit, update) are expanded.
- Rules may restrict entities by attribute values (keyword arguments) or by a condition callable receiving the
  identity and the entity. When no entity is available (authorizing a class or a nested subject), a restricted
  ``can`` rule is enough to allow the action while a restricted ``cannot`` rule is ignored.
- Attribute values of ``can`` rules become the default attributes of new entities, and rules with a condition
  callable are reported as custom rules since they cannot be turned into a query.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

from resourcegate.engine.gate import NestedSubject
from resourcegate.engine.naming import AuthOnlySymbol
from resourcegate.policy.provider import AuthorizationPolicy

logger = logging.getLogger(__name__)

Condition = Callable[[Any, Any], bool]

ACTION_ALIASES = {
    "read": frozenset({"index", "show"}),
    "create": frozenset({"new", "create"}),
    "update": frozenset({"edit", "update"}),
}


def _expand_actions(actions: Iterable[str]) -> frozenset[str]:
    expanded: set[str] = set()

    for action in actions:
        expanded.add(action)
        expanded.update(ACTION_ALIASES.get(action, ()))

    return frozenset(expanded)


@dataclass(frozen=True)
class Rule:
    allowed: bool
    actions: frozenset[str]
    subjects: tuple[Any, ...]
    attributes: dict[str, Any] = field(default_factory=dict)
    condition: Optional[Condition] = None

    def relevant(self, action: str, subject: Any) -> bool:
        return ("manage" in self.actions or action in self.actions) and any(
            self._subject_matches(candidate, subject) for candidate in self.subjects
        )

    @staticmethod
    def _subject_matches(candidate: Any, subject: Any) -> bool:
        if candidate == "all":
            return True

        if isinstance(subject, AuthOnlySymbol):
            return candidate == subject.name

        if isinstance(candidate, str):
            return isinstance(subject, type) and candidate == subject.__name__

        return isinstance(subject, type) and isinstance(candidate, type) and issubclass(subject, candidate)

    def matches_entity(self, identity: Any, entity: Any) -> bool:
        for name, value in self.attributes.items():
            if getattr(entity, name, None) != value:
                return False

        if self.condition is not None:
            return bool(self.condition(identity, entity))

        return True


class RulePolicy(AuthorizationPolicy):
    """Policy built from ``can`` and ``cannot`` rules, declared by subclasses in ``define_rules``."""

    def __init__(self, identity: Any = None, policy_config: Optional[dict[str, Any]] = None) -> None:
        super().__init__(identity, policy_config)
        self.rules: list[Rule] = []
        self.define_rules()
        logger.debug("Initialized %s with %d rule(s)", self.get_name(), len(self.rules))

    def define_rules(self) -> None:
        pass

    def add_rule(
        self,
        allowed: bool,
        actions: Union[str, Iterable[str]],
        subjects: Any,
        condition: Optional[Condition] = None,
        **attributes: Any,
    ) -> Rule:
        if isinstance(actions, str):
            actions = [actions]

        if not isinstance(subjects, (list, tuple)):
            subjects = (subjects,)

        rule = Rule(allowed, _expand_actions(actions), tuple(subjects), attributes, condition)
        self.rules.append(rule)
        return rule

    def can(
        self, actions: Union[str, Iterable[str]], subjects: Any, condition: Optional[Condition] = None, **attributes: Any
    ) -> Rule:
        return self.add_rule(True, actions, subjects, condition, **attributes)

    def cannot(
        self, actions: Union[str, Iterable[str]], subjects: Any, condition: Optional[Condition] = None, **attributes: Any
    ) -> Rule:
        return self.add_rule(False, actions, subjects, condition, **attributes)

    def allows(self, action: str, subject: Any) -> bool:
        subject_class, entity = self._split_subject(subject)

        for rule in reversed(self.rules_for(action, subject_class)):
            if entity is not None:
                if rule.matches_entity(self.identity, entity):
                    return rule.allowed
            elif rule.allowed or not (rule.attributes or rule.condition):
                # Restricted cannot rules only apply to entities
                return rule.allowed

        return False

    def rules_for(self, action: str, resource_class: Any) -> list[Rule]:
        return [rule for rule in self.rules if rule.relevant(action, resource_class)]

    def has_custom_rule(self, action: str, resource_class: Any) -> bool:
        return any(rule.condition is not None for rule in self.rules_for(action, resource_class))

    def default_attributes_for(self, action: str, resource_class: Any) -> dict[str, Any]:
        attributes: dict[str, Any] = {}

        for rule in self.rules_for(action, resource_class):
            if rule.allowed:
                attributes.update(rule.attributes)

        return attributes

    @staticmethod
    def _split_subject(subject: Any) -> tuple[Any, Any]:
        if isinstance(subject, NestedSubject):
            return subject.resource_class, None

        if isinstance(subject, (type, AuthOnlySymbol)):
            return subject, None

        return type(subject), subject
