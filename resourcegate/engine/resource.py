from functools import cached_property
from typing import TYPE_CHECKING, Any, Optional, Union

from resourcegate.engine.descriptor import ResourceDescriptor
from resourcegate.engine.gate import AuthorizationGate
from resourcegate.engine.hooks import HookMatcher, HookRegistration
from resourcegate.engine.loader import ResourceLoader
from resourcegate.engine.naming import AuthOnlySymbol, ClassResolver, TypeRegistry, name_from_controller
from resourcegate.engine.params import ParameterSanitizer
from resourcegate.engine.parent import ParentChainResolver

if TYPE_CHECKING:
    from resourcegate.engine.additions import ControllerAdditions
    from resourcegate.engine.context import RequestContext
    from resourcegate.policy.provider import AuthorizationPolicy


class ControllerResource:
    """Loads and authorizes one declared resource for the request represented by ``context``.

    A new instance is created for every request and every resource declaration; it is normally built by the hooks
    registered through ``ControllerAdditions`` rather than directly::

        resource = ControllerResource(controller, "project", through="organization")
        resource.load_and_authorize_resource()

    Options are validated as soon as the instance is created, so that unknown or removed options raise a
    ``ConfigurationError`` before anything is loaded.
    """

    @classmethod
    def add_before_action(
        cls, controller_class: type["ControllerAdditions"], phase: str, name: Optional[str] = None, /, **options: Any
    ) -> HookRegistration:
        """Registers a hook on ``controller_class`` which runs ``phase`` for the resource before matching actions.
        The options ``only``, ``except_``, ``if_`` and ``unless`` decide which requests the hook applies to and
        ``prepend`` places it before the hooks registered so far.
        """
        matcher = HookMatcher.from_options(options)
        prepend = bool(options.pop("prepend", False))

        # Fail at declaration time rather than on the first request
        ResourceDescriptor.from_options(name, **options)

        registration = HookRegistration(phase=phase, name=name, options=options, matcher=matcher, prepend=prepend)
        controller_class.register_resource_hook(registration)
        return registration

    def __init__(
        self,
        context: "RequestContext",
        name: Optional[str] = None,
        /,
        *,
        types: Optional[TypeRegistry] = None,
        strict: Optional[bool] = None,
        orphan_policy: Optional[str] = None,
        **options: Any,
    ) -> None:
        """
        :raises: :class:`ConfigurationError`: an option is unknown or has been removed
        """
        self.context = context
        self.descriptor = ResourceDescriptor.from_options(name, **options)
        self.class_resolver = ClassResolver(types, strict)
        self.parents = ParentChainResolver(self, orphan_policy)
        self.sanitizer = ParameterSanitizer(self)
        self.loader = ResourceLoader(self)
        self.gate = AuthorizationGate(self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, action={self.action!r})"

    def load_and_authorize_resource(self) -> None:
        self.load_resource()
        self.authorize_resource()

    def load_resource(self) -> None:
        self.loader.load()

    def authorize_resource(self) -> None:
        self.gate.authorize()

    def skip(self, behavior: str) -> bool:
        store = self.context.skip_policies

        if store is None:
            return False

        return store.skip(behavior, self.descriptor.name, self.action)

    def is_parent(self) -> bool:
        return self.parents.is_parent()

    @property
    def action(self) -> str:
        return self.context.action

    @property
    def name(self) -> str:
        return self.descriptor.name or name_from_controller(self.context.controller_path)

    @property
    def instance_name(self) -> str:
        return self.descriptor.instance_name or self.name

    @cached_property
    def resource_class(self) -> Union[type, AuthOnlySymbol]:
        return self.class_resolver.resolve(self.descriptor, self.context.controller_path)

    @property
    def policy(self) -> "AuthorizationPolicy":
        return self.context.current_policy()

    @property
    def authorization_action(self) -> str:
        return self.descriptor.parent_action if self.is_parent() else self.action

    @property
    def id_param(self) -> Optional[str]:
        return self.loader.id_param

    @property
    def resource_instance(self) -> Any:
        return self.loader.resource_instance

    @property
    def collection_instance(self) -> Any:
        return self.loader.collection_instance

    @property
    def parent_resource(self) -> Any:
        return self.parents.parent_resource()
