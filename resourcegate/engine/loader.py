from typing import TYPE_CHECKING, Any, Mapping, Optional

import inflection

from resourcegate import resourcegate_logging
from resourcegate import adapters
from resourcegate.engine.naming import AuthOnlySymbol
from resourcegate.engine.parent import read_accessor

if TYPE_CHECKING:
    from resourcegate.engine.resource import ControllerResource

logger = resourcegate_logging.init_logging("engine")


class ResourceLoader:
    """Decides how a resource should be loaded for the current action and loads it into the request's attribute store.

    * Parent resources and member actions load a single instance. Instances are built for new actions and found by
      id otherwise (singletons are read from their parent instead).
    * Other actions load a collection, provided the resource base offers ``accessible_by`` and the policy has no
      custom rule for the action that would prevent it from being expressed as a query.

    Loading is idempotent: values already present in the store are kept and no further lookups are made.
    """

    def __init__(self, resource: "ControllerResource") -> None:
        self.resource = resource

    @property
    def collection_name(self) -> str:
        return inflection.pluralize(self.resource.instance_name)

    def load(self) -> None:
        resource = self.resource
        store = resource.context.attributes

        if resource.skip("load"):
            logger.debug("Skipping load of resource '%s' for action '%s'", resource.name, resource.action)
            return

        if isinstance(resource.resource_class, AuthOnlySymbol):
            logger.debug("Resource '%s' has no class and is not loaded", resource.name)
            return

        if self.instance_loadable():
            store.fetch(resource.instance_name, self.load_resource_instance)
        elif self.collection_loadable():
            store.fetch(self.collection_name, self.load_collection)

    def instance_loadable(self) -> bool:
        return self.resource.is_parent() or self.member_action()

    def member_action(self) -> bool:
        descriptor = self.resource.descriptor
        params = self.resource.context.params
        action = self.resource.action

        has_id = params.get("id") is not None or (
            descriptor.id_param is not None and params.get(descriptor.id_param) is not None
        )

        return (
            action in descriptor.new_actions
            or descriptor.singleton
            or (has_id and action not in descriptor.collection_actions)
        )

    def collection_loadable(self) -> bool:
        resource = self.resource
        base = resource.parents.resource_base()

        return hasattr(base, "accessible_by") and not resource.policy.has_custom_rule(
            resource.authorization_action, resource.resource_class
        )

    def load_collection(self) -> Any:
        resource = self.resource
        logger.debug("Loading collection '%s' for action '%s'", self.collection_name, resource.authorization_action)
        return resource.parents.resource_base().accessible_by(resource.policy, resource.authorization_action)

    def load_resource_instance(self) -> Any:
        descriptor = self.resource.descriptor

        if not self.resource.is_parent() and self.resource.action in descriptor.new_actions:
            return self.build_resource()

        if self.id_param is not None or descriptor.singleton:
            return self.find_resource()

        return None

    @property
    def adapter(self) -> "adapters.AbstractAdapter":
        return adapters.AbstractAdapter.adapter_for(self.resource.resource_class)

    def build_resource(self) -> Any:
        params = self.resource.sanitizer.resource_params()
        instance = self.adapter.build(self.resource.parents.resource_base(), dict(params or {}))
        logger.debug("Built new instance of resource '%s'", self.resource.name)
        return self.assign_attributes(instance, params)

    def assign_attributes(self, instance: Any, params: Optional[Mapping[str, Any]]) -> Any:
        link = self.resource.parents.parent_link()

        if self.resource.descriptor.singleton and link:
            setattr(instance, link.name, link.entity)

        for attr_name, value in self.initial_attributes(params).items():
            setattr(instance, attr_name, value)

        return instance

    def initial_attributes(self, params: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        defaults = self.resource.policy.default_attributes_for(self.resource.action, self.resource.resource_class)
        return {key: value for key, value in defaults.items() if not (params and key in params)}

    def find_resource(self) -> Any:
        descriptor = self.resource.descriptor
        link = self.resource.parents.parent_link()

        if descriptor.singleton and link and hasattr(link.entity, self.resource.name):
            return read_accessor(link.entity, self.resource.name)

        if descriptor.find_by:
            return self.find_resource_using_find_by()

        logger.debug("Finding resource '%s' with id '%s'", self.resource.name, self.id_param)
        return self.adapter.find(self.resource.parents.resource_base(), self.id_param)

    def find_resource_using_find_by(self) -> Any:
        base = self.resource.parents.resource_base()
        field = self.resource.descriptor.find_by
        strict_finder = getattr(base, f"find_by_{field}", None)

        if callable(strict_finder):
            return strict_finder(self.id_param)

        if callable(getattr(base, "find_by", None)):
            return base.find_by(**{field: self.id_param})

        return getattr(base, field)(self.id_param)

    @property
    def id_param_key(self) -> str:
        if self.resource.descriptor.id_param:
            return self.resource.descriptor.id_param

        return f"{self.resource.name}_id" if self.resource.is_parent() else "id"

    @property
    def id_param(self) -> Optional[str]:
        value = self.resource.context.params.get(self.id_param_key)
        return str(value) if value is not None else None

    @property
    def resource_instance(self) -> Any:
        if self.instance_loadable():
            return self.resource.context.get_attribute(self.resource.instance_name)

        return None

    @property
    def collection_instance(self) -> Any:
        return self.resource.context.get_attribute(self.collection_name)
