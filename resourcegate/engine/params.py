from typing import TYPE_CHECKING, Any, Mapping, Optional

from resourcegate.engine.descriptor import SAVE_ACTIONS, ParamExpression, ParamMethod
from resourcegate.engine.naming import extract_key

if TYPE_CHECKING:
    from resourcegate.engine.resource import ControllerResource


class ParameterSanitizer:
    """Produces the attributes used to build a resource. For save actions, or when the request carries parameters
    under the resource's key, the first of these which the context can invoke is used:

    1. the ``param_method`` option (a method name, a ``ParamExpression`` or a callable taking the context)
    2. ``<action>_params``
    3. ``<name>_params``
    4. ``<action>_<name>_params``
    5. ``resource_params``

    Otherwise the parameters given under the resource's key are used as-is.
    """

    def __init__(self, resource: "ControllerResource") -> None:
        self.resource = resource

    def resource_params(self) -> Optional[Mapping[str, Any]]:
        if self.requires_sanitizing():
            method = self.params_method()

            if method is not None:
                return self.invoke(method)

        return self.params_by_namespaced_name()

    def requires_sanitizing(self) -> bool:
        return self.resource.action in SAVE_ACTIONS or bool(self.params_by_namespaced_name())

    def params_methods(self) -> list[ParamMethod]:
        action = self.resource.action
        name = self.resource.name
        methods: list[ParamMethod] = [
            f"{action}_params",
            f"{name}_params",
            f"{action}_{name}_params",
            "resource_params",
        ]

        if self.resource.descriptor.param_method:
            methods.insert(0, self.resource.descriptor.param_method)

        return methods

    def invocable(self, method: ParamMethod) -> bool:
        if isinstance(method, ParamExpression):
            return bool(method)

        if isinstance(method, str):
            return self.resource.context.responds_to(method)

        return callable(method)

    def params_method(self) -> Optional[ParamMethod]:
        for method in self.params_methods():
            if self.invocable(method):
                return method

        return None

    def invoke(self, method: ParamMethod) -> Any:
        context = self.resource.context

        if isinstance(method, ParamExpression):
            return context.evaluate(method)

        if isinstance(method, str):
            return context.invoke(method)

        return method(context)

    def params_by_namespaced_name(self) -> Any:
        descriptor = self.resource.descriptor
        params = self.resource.context.params
        types = self.resource.class_resolver.types

        if descriptor.instance_name:
            key = extract_key(descriptor.instance_name, types)

            if key in params:
                return params[key]

        if descriptor.class_override:
            key = extract_key(descriptor.class_override, types)

            if key in params:
                return params[key]

        namespaced_name = self.resource.class_resolver.namespaced_name(
            self.resource.name, self.resource.context.namespace
        )

        return params.get(extract_key(namespaced_name, types))
