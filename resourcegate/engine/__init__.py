from resourcegate.engine.additions import ControllerAdditions
from resourcegate.engine.context import RequestAttributeStore, RequestContext
from resourcegate.engine.descriptor import NO_CLASS, ParamExpression, ResourceDescriptor
from resourcegate.engine.errors import (
    AccessDenied,
    ClassResolutionError,
    ConfigurationError,
    ImplementationRemoved,
    RecordNotFound,
    ResourceError,
)
from resourcegate.engine.gate import NestedSubject
from resourcegate.engine.hooks import HookMatcher, HookRegistration
from resourcegate.engine.naming import AuthOnlySymbol, TypeRegistry, registry
from resourcegate.engine.resource import ControllerResource
from resourcegate.engine.skip import Always, ExceptIf, OnlyIf, SkipPolicyStore

__all__ = [
    "AccessDenied",
    "Always",
    "AuthOnlySymbol",
    "ClassResolutionError",
    "ConfigurationError",
    "ControllerAdditions",
    "ControllerResource",
    "ExceptIf",
    "HookMatcher",
    "HookRegistration",
    "ImplementationRemoved",
    "NO_CLASS",
    "NestedSubject",
    "OnlyIf",
    "ParamExpression",
    "RecordNotFound",
    "RequestAttributeStore",
    "RequestContext",
    "ResourceDescriptor",
    "ResourceError",
    "SkipPolicyStore",
    "TypeRegistry",
    "registry",
]
