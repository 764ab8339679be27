import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

import inflection

from resourcegate import config, resourcegate_logging
from resourcegate.engine.errors import AccessDenied, ConfigurationError, RecordNotFound
from resourcegate.engine.naming import name_from_controller

if TYPE_CHECKING:
    from resourcegate.engine.resource import ControllerResource

logger = resourcegate_logging.init_logging("engine")

ORPHAN_POLICIES = ("access_denied", "not_found")


@dataclass(frozen=True)
class ParentLink:
    name: str
    entity: Any


def read_accessor(entity: Any, name: str) -> Any:
    """Reads an association from an entity, calling it if it is exposed as a method rather than an attribute."""
    value = getattr(entity, name)
    return value() if inspect.ismethod(value) else value


class ParentChainResolver:
    """Works out whether a resource is nested within a parent resource and, if so, finds the parent among the
    entities already resolved for the request.

    When a nested resource has no parent and is not shallow, the outcome depends on the orphan policy: by default
    ``AccessDenied`` is raised, but ``"not_found"`` (set by argument or by the ``orphan_nested_resource`` option of
    the ``[engine]`` section) raises ``RecordNotFound`` instead.
    """

    def __init__(self, resource: "ControllerResource", orphan_policy: Optional[str] = None) -> None:
        if orphan_policy is None:
            orphan_policy = config.get(
                "resourcegate", "orphan_nested_resource", section="engine", fallback="access_denied"
            )

        if orphan_policy not in ORPHAN_POLICIES:
            raise ConfigurationError(
                f"orphan policy '{orphan_policy}' is not one of {', '.join(repr(p) for p in ORPHAN_POLICIES)}"
            )

        self.resource = resource
        self.orphan_policy = orphan_policy

    def is_parent(self) -> bool:
        descriptor = self.resource.descriptor

        if descriptor.parent is not None:
            return bool(descriptor.parent)

        return descriptor.name is not None and descriptor.name != name_from_controller(
            self.resource.context.controller_path
        )

    def fetch_parent(self, name: str) -> Any:
        context = self.resource.context

        if context.has_attribute(name):
            return context.get_attribute(name)

        if context.responds_to(name):
            return context.invoke(name)

        return None

    def parent_link(self) -> Optional[ParentLink]:
        for name in self.resource.descriptor.through:
            entity = self.fetch_parent(name)

            if entity is not None and entity is not False:
                return ParentLink(name, entity)

        return None

    def parent_name(self) -> Optional[str]:
        link = self.parent_link()
        return link.name if link else None

    def parent_resource(self) -> Any:
        link = self.parent_link()
        return link.entity if link else None

    def resource_base(self) -> Any:
        """The object on which the resource is found or built: the resource class itself, or the association of the
        parent through which the resource should be reached. Singleton resources use the class, as they are read from
        the parent later on.

        :raises: :class:`AccessDenied`: nested resource without parent, with the default orphan policy
        :raises: :class:`RecordNotFound`: nested resource without parent, with the ``"not_found"`` orphan policy
        """
        descriptor = self.resource.descriptor
        resource_class = self.resource.resource_class

        if not descriptor.through:
            return resource_class

        link = self.parent_link()

        if link:
            if descriptor.singleton:
                return resource_class

            association = descriptor.through_association or inflection.pluralize(self.resource.name)
            return read_accessor(link.entity, association)

        if descriptor.shallow:
            return resource_class

        logger.warning(
            "No parent (%s) found for nested resource '%s'", ", ".join(descriptor.through), self.resource.name
        )

        if self.orphan_policy == "not_found":
            raise RecordNotFound(
                f"no parent ({', '.join(descriptor.through)}) found for nested resource '{self.resource.name}'"
            )

        raise AccessDenied(action=self.resource.authorization_action, subject=resource_class)
