from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

import inflection

from resourcegate import config, resourcegate_logging
from resourcegate.engine.descriptor import NO_CLASS, ResourceDescriptor
from resourcegate.engine.errors import ClassResolutionError

logger = resourcegate_logging.init_logging("engine")


@dataclass(frozen=True)
class AuthOnlySymbol:
    """Stands in for the class of a resource which cannot be loaded, so that it can still be authorized by name."""

    name: str

    def __str__(self) -> str:
        return self.name


class TypeRegistry:
    """Maps the dotted, camel-cased names derived from controller paths (``"Widget"``, ``"Admin.Widget"``) to the
    model classes they should resolve to.

    Classes are registered under their ``__name__`` unless a name is given::

        @registry.register
        class Widget: ...

        registry.register(AdminWidget, name="Admin.Widget")
    """

    def __init__(self) -> None:
        self._types: dict[str, type] = {}
        self._names: dict[type, str] = {}

    def register(self, cls: Optional[type] = None, name: Optional[str] = None) -> Any:
        def register_type(inner_cls: type) -> type:
            type_name = name or inner_cls.__name__
            self._types[type_name] = inner_cls
            self._names[inner_cls] = type_name
            return inner_cls

        if cls is None:
            return register_type

        return register_type(cls)

    def lookup(self, name: str) -> Optional[type]:
        return self._types.get(name)

    def name_of(self, cls: type) -> str:
        return self._names.get(cls, cls.__name__)

    def clear(self) -> None:
        self._types.clear()
        self._names.clear()


# Default registry used when none is given
registry = TypeRegistry()


def name_from_controller(controller_path: str) -> str:
    return inflection.singularize(controller_path.split("/")[-1])


def type_name_for(path: str) -> str:
    """``"admin/widgets"`` -> ``"Admin.Widget"``"""
    return ".".join(inflection.camelize(segment) for segment in inflection.singularize(path).split("/"))


def extract_key(value: Union[str, type], types: Optional[TypeRegistry] = None) -> str:
    """Normalises a name or class into the key used for its parameters, e.g. ``Admin.BlogPost`` -> ``admin_blog_post``."""
    if isinstance(value, type):
        value = (types or registry).name_of(value)

    return inflection.underscore(str(value)).replace("/", "_").replace(".", "_")


class ClassResolver:
    """Resolves the class of a resource from its descriptor and the namespace of the controller.

    When no class is given, the class is found by naming convention, first within the namespace and then without it.
    If neither exists, strict resolution raises ``ClassResolutionError`` while lenient resolution (the default) falls
    back on an ``AuthOnlySymbol`` so that the resource can still be authorized. The mode defaults to the
    ``class_resolution`` option of the ``[engine]`` section.
    """

    def __init__(self, types: Optional[TypeRegistry] = None, strict: Optional[bool] = None) -> None:
        self.types = types or registry

        if strict is None:
            strict = config.get("resourcegate", "class_resolution", section="engine", fallback="lenient") == "strict"

        self.strict = strict

    def namespaced_class(self, name: str, namespace: Sequence[str]) -> Optional[type]:
        return self.types.lookup(type_name_for("/".join([*namespace, name])))

    def namespaced_name(self, name: str, namespace: Sequence[str]) -> Union[type, str]:
        return self.namespaced_class(name, namespace) or name

    def resolve(self, descriptor: ResourceDescriptor, controller_path: str) -> Union[type, AuthOnlySymbol]:
        """
        :raises: :class:`ClassResolutionError`: the class cannot be found and resolution is strict, or a class name
            given explicitly is not registered
        """
        name = descriptor.name or name_from_controller(controller_path)
        override = descriptor.class_override

        if override is NO_CLASS:
            return AuthOnlySymbol(name)

        if isinstance(override, type):
            return override

        if isinstance(override, str):
            cls = self.types.lookup(override)

            if not cls:
                raise ClassResolutionError(f"class '{override}' given for resource '{name}' is not registered")

            return cls

        if override is not None:
            raise ClassResolutionError(f"class option for resource '{name}' must be a type or name, not {override!r}")

        namespace = controller_path.split("/")[:-1]
        cls = self.namespaced_class(name, namespace) or self.types.lookup(type_name_for(name))

        if cls:
            return cls

        if self.strict:
            raise ClassResolutionError(
                f"no class registered as '{type_name_for('/'.join([*namespace, name]))}' or '{type_name_for(name)}' "
                f"for resource '{name}'"
            )

        logger.warning("No class found for resource '%s', it will only be authorized by name", name)
        return AuthOnlySymbol(name)
