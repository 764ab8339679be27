"""Authorization policy interface for resourcegate.

This module defines the abstract interface that all authorization policies must implement. Policies determine
whether an identity is authorized to perform an action on a subject, and can also tell the engine how collections
of resources may be loaded and which attributes new resources should start with.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from resourcegate.engine.errors import AccessDenied


class AuthorizationPolicy(ABC):
    """Abstract base class for authorization policies.

    A new policy instance is created for every identity (typically once per request) by the ``PolicyManager``.
    Implementations must provide ``allows``; ``authorize`` raises ``AccessDenied`` on the strength of it.
    """

    def __init__(self, identity: Any = None, policy_config: Optional[dict[str, Any]] = None) -> None:
        """Initialize the policy.

        Args:
            identity: The authenticated identity the policy decides for, or None for anonymous requests
            policy_config: Policy-specific configuration
        """
        self.identity = identity
        self.policy_config = policy_config or {}

    @abstractmethod
    def allows(self, action: str, subject: Any) -> bool:
        """Decide whether the identity may perform ``action`` on ``subject``.

        Args:
            action: The action name, e.g. "show" or "update"
            subject: An entity, a NestedSubject, a class or an AuthOnlySymbol

        Returns:
            True if the action is allowed
        """

    def authorize(self, action: str, subject: Any) -> None:
        """Raise AccessDenied unless ``action`` is allowed on ``subject``.

        Raises:
            AccessDenied: The action is not allowed
        """
        if not self.allows(action, subject):
            raise AccessDenied(action=action, subject=subject)

    def has_custom_rule(self, action: str, resource_class: Any) -> bool:
        """Whether the rules for ``action`` on ``resource_class`` cannot be expressed as a query, in which case
        collections are not loaded for it.
        """
        return False

    def default_attributes_for(self, action: str, resource_class: Any) -> dict[str, Any]:
        """Attributes that new instances of ``resource_class`` should be built with for ``action``."""
        return {}

    def get_name(self) -> str:
        return self.__class__.__name__
