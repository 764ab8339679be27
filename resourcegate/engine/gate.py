from typing import TYPE_CHECKING, Any, NamedTuple

from resourcegate import resourcegate_logging

if TYPE_CHECKING:
    from resourcegate.engine.resource import ControllerResource

logger = resourcegate_logging.init_logging("engine")


class NestedSubject(NamedTuple):
    """Authorization subject for a resource without an instance, scoped by the parent it would be reached through."""

    parent: Any
    resource_class: Any


class AuthorizationGate:
    def __init__(self, resource: "ControllerResource") -> None:
        self.resource = resource

    def subject(self) -> Any:
        instance = self.resource.resource_instance

        if instance is not None:
            return instance

        link = self.resource.parents.parent_link()

        if link:
            return NestedSubject(link.entity, self.resource.resource_class)

        return self.resource.resource_class

    def authorize(self) -> None:
        """
        :raises: :class:`AccessDenied`: (or whatever the policy raises) the action is refused
        """
        resource = self.resource

        if resource.skip("authorize"):
            logger.debug("Skipping authorization of resource '%s' for action '%s'", resource.name, resource.action)
            return

        action = resource.authorization_action
        subject = self.subject()

        logger.debug("Authorizing '%s' on %r", action, subject)
        resource.policy.authorize(action, subject)
