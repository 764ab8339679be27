from typing import Any, ClassVar, Iterable, Optional, Union

from resourcegate import resourcegate_logging
from resourcegate.engine.hooks import HookRegistration
from resourcegate.engine.resource import ControllerResource
from resourcegate.engine.skip import SkipPolicyStore, rules_from_options

logger = resourcegate_logging.init_logging("engine")

Actions = Optional[Union[str, Iterable[str]]]


class ControllerAdditions:
    """Mixin which lets controllers declare the resources to load and authorize before their actions run.

    Declarations are made by calling the class methods below, usually from a ``_resources`` class method which is
    invoked automatically when the controller class is defined::

        class ProjectsController(Controller):
            @classmethod
            def _resources(cls):
                cls.load_and_authorize_resource("organization")
                cls.load_and_authorize_resource(through="organization", except_="index")
                cls.skip_authorize_resource(only="preview")

    Each subclass starts from a copy of its parent's declarations, so that a subclass may add to them without
    affecting the parent. Classes mixing this in must also implement ``RequestContext`` and list this mixin first
    among their bases.
    """

    _resource_hooks: ClassVar[list[HookRegistration]] = []
    _skip_policies: ClassVar[SkipPolicyStore] = SkipPolicyStore()

    resource_class_factory: ClassVar[type[ControllerResource]] = ControllerResource

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._resource_hooks = list(cls._resource_hooks)
        cls._skip_policies = cls._skip_policies.copy()

        if "_resources" in cls.__dict__:
            cls._resources()

    @classmethod
    def _resources(cls) -> None:
        pass

    @classmethod
    def load_and_authorize_resource(cls, name: Optional[str] = None, /, **options: Any) -> HookRegistration:
        """Loads the resource into the request's attributes and then authorizes it, before every matching action."""
        return cls.resource_class_factory.add_before_action(cls, "load_and_authorize", name, **options)

    @classmethod
    def load_resource(cls, name: Optional[str] = None, /, **options: Any) -> HookRegistration:
        return cls.resource_class_factory.add_before_action(cls, "load", name, **options)

    @classmethod
    def authorize_resource(cls, name: Optional[str] = None, /, **options: Any) -> HookRegistration:
        return cls.resource_class_factory.add_before_action(cls, "authorize", name, **options)

    @classmethod
    def skip_load_and_authorize_resource(
        cls, name: Optional[str] = None, only: Actions = None, except_: Actions = None
    ) -> None:
        cls.skip_load_resource(name, only=only, except_=except_)
        cls.skip_authorize_resource(name, only=only, except_=except_)

    @classmethod
    def skip_load_resource(cls, name: Optional[str] = None, only: Actions = None, except_: Actions = None) -> None:
        """Exempts the resource from loading for the given actions (all actions if neither ``only`` nor ``except_``
        is given). ``name`` selects the resource declared with that name; ``None`` means the resource named after the
        controller. A later call for the same resource replaces the earlier one.
        """
        cls._skip_policies.register("load", name, rules_from_options(only, except_))

    @classmethod
    def skip_authorize_resource(cls, name: Optional[str] = None, only: Actions = None, except_: Actions = None) -> None:
        cls._skip_policies.register("authorize", name, rules_from_options(only, except_))

    @classmethod
    def register_resource_hook(cls, registration: HookRegistration) -> None:
        if registration.prepend:
            cls._resource_hooks.insert(0, registration)
        else:
            cls._resource_hooks.append(registration)

    @classmethod
    def resource_hooks(cls) -> list[HookRegistration]:
        return list(cls._resource_hooks)

    @property
    def skip_policies(self) -> SkipPolicyStore:
        return type(self)._skip_policies

    def resource_for(self, name: Optional[str] = None, /, **options: Any) -> ControllerResource:
        return self.resource_class_factory(self, name, **options)

    def run_resource_hooks(self) -> None:
        """Runs, in order, the phase of every registered hook which matches the current request.

        :raises: :class:`AccessDenied`: a resource may not be accessed by the current identity
        :raises: :class:`RecordNotFound`: a resource could not be found
        """
        for registration in self._resource_hooks:
            if not registration.matcher.matches(self):
                continue

            resource = self.resource_for(registration.name, **registration.options)
            logger.debug("Running '%s' for %r", registration.phase, resource)
            getattr(resource, registration.method)()
