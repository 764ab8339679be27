"""Policy manager for resourcegate.

The policy manager loads the configured authorization policy class and creates a policy for each identity, wrapped
so that every authorization decision is logged for the audit trail.
"""

import importlib
import logging
from typing import Any, Optional

from resourcegate import config
from resourcegate.engine.errors import AccessDenied
from resourcegate.policy.provider import AuthorizationPolicy

logger = logging.getLogger(__name__)

# Global policy manager instance
_manager: Optional["PolicyManager"] = None


class DenyAllPolicy(AuthorizationPolicy):
    """Fail-safe policy that denies every action."""

    def allows(self, action: str, subject: Any) -> bool:
        return False

    def get_name(self) -> str:
        return "deny_all"


class AuditedPolicy(AuthorizationPolicy):
    """Wraps a policy to log each decision it makes. Errors raised by the wrapped policy, other than
    ``AccessDenied``, are logged and turned into ``AccessDenied`` (fail-safe deny).
    """

    def __init__(self, policy: AuthorizationPolicy) -> None:
        super().__init__(policy.identity, policy.policy_config)
        self.policy = policy

    def __getattr__(self, name: str) -> Any:
        policy = self.__dict__.get("policy")

        if policy is None:
            raise AttributeError(name)

        return getattr(policy, name)

    def allows(self, action: str, subject: Any) -> bool:
        try:
            self.authorize(action, subject)
        except AccessDenied:
            return False

        return True

    def authorize(self, action: str, subject: Any) -> None:
        log_msg = "Authorization %s: identity=%s, action=%s, subject=%r, policy=%s"

        try:
            self.policy.authorize(action, subject)
        except AccessDenied:
            logger.warning(log_msg, "DENIED", self.identity, action, subject, self.policy.get_name())
            raise
        except Exception as e:
            logger.error(
                "Authorization policy %s encountered error: %s (denying by default)",
                self.policy.get_name(),
                e,
                exc_info=True,
            )
            raise AccessDenied(action=action, subject=subject) from e

        logger.info(log_msg, "GRANTED", self.identity, action, subject, self.policy.get_name())

    def has_custom_rule(self, action: str, resource_class: Any) -> bool:
        return self.policy.has_custom_rule(action, resource_class)

    def default_attributes_for(self, action: str, resource_class: Any) -> dict[str, Any]:
        return self.policy.default_attributes_for(action, resource_class)

    def get_name(self) -> str:
        return self.policy.get_name()


class PolicyManager:
    """Loads the authorization policy class and creates policies for identities.

    The manager is responsible for:
    - Loading the policy class named by the ``policy`` option of the ``[engine]`` section (as ``module:Class``)
    - Falling back to a deny-all policy when no policy is configured or it fails to load
    - Wrapping policies so that their decisions are audited
    """

    def __init__(self, policy_class: Optional[type[AuthorizationPolicy]] = None) -> None:
        """Initialize the policy manager.

        Args:
            policy_class: The policy class to use. If not given, it is read from the configuration.
        """
        self._policy_class: type[AuthorizationPolicy] = DenyAllPolicy

        if policy_class is not None:
            self._policy_class = policy_class
        else:
            self._load_policy_class()

        logger.info("Authorization policy %s loaded successfully", self.get_policy_name())

    def _load_policy_class(self) -> None:
        """Load the configured policy class from configuration."""
        policy_path = config.get("resourcegate", "policy", section="engine")

        if not policy_path:
            logger.warning("No authorization policy configured, all requests will be denied")
            return

        try:
            logger.info("Loading authorization policy: %s", policy_path)
            module_name, _, class_name = policy_path.partition(":")
            policy_class = getattr(importlib.import_module(module_name), class_name)

            if not isinstance(policy_class, type) or not issubclass(policy_class, AuthorizationPolicy):
                raise TypeError(f"{policy_path} is not an AuthorizationPolicy")

            self._policy_class = policy_class

        except Exception as e:
            logger.error("Failed to load authorization policy: %s", e)
            logger.error("SECURITY: Falling back to deny-all policy for safety")
            self._policy_class = DenyAllPolicy

    def policy_for(self, identity: Any = None) -> AuditedPolicy:
        """Create the policy deciding for ``identity``.

        Args:
            identity: The authenticated identity, or None for anonymous requests

        Returns:
            The policy, wrapped to audit its decisions
        """
        try:
            policy = self._policy_class(identity)
        except Exception as e:
            logger.error("Authorization policy %s failed to initialize: %s", self._policy_class.__name__, e)
            logger.error("SECURITY: Falling back to deny-all policy for safety")
            policy = DenyAllPolicy(identity)

        return AuditedPolicy(policy)

    def get_policy_name(self) -> str:
        """Get the name of the loaded policy class.

        Returns:
            Policy class name (e.g., "ProjectPolicy", "DenyAllPolicy")
        """
        return self._policy_class.__name__


def get_policy_manager() -> PolicyManager:
    """Get the global policy manager instance.

    Returns:
        PolicyManager singleton instance

    Note:
        The manager is created on first access and reused for all subsequent calls.
    """
    global _manager

    if _manager is None:
        _manager = PolicyManager()

    return _manager
