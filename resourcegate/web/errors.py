"""Errors raised by the Tornado host while declaring routes and dispatching requests to controller actions.

Errors from the resource pipeline itself (``AccessDenied``, ``RecordNotFound``...) live in
``resourcegate.engine.errors`` and are mapped to responses by ``ActionHandler``.
"""


class WebError(Exception):
    pass


class RouteError(WebError):
    """A route is declared with an invalid method or pattern, or is asked to handle a path it does not match."""


class InvalidMethod(RouteError):
    pass


class InvalidPathOrPattern(RouteError):
    pass


class PatternMismatch(RouteError):
    pass


class DispatchError(WebError):
    """A request could not be handed to, or completed by, a controller action."""


class ActionUndefined(DispatchError):
    pass


class ActionDispatchError(DispatchError):
    """The request parameters do not fit the signature of the routed action. Answered with a 400."""


class ActionIncompleteError(DispatchError):
    """The action returned without sending a response."""


class ParamDecodeError(WebError):
    """The query string or JSON body of the request is malformed. Answered with a 400."""
