import re
from inspect import iscoroutinefunction
from typing import Any, Mapping, Optional

from resourcegate.web.controller import Controller
from resourcegate.web.errors import (
    ActionDispatchError,
    ActionUndefined,
    InvalidMethod,
    InvalidPathOrPattern,
    PatternMismatch,
)


class Route:
    """Binds an HTTP method and a path pattern to an action of a controller.

    Routes are declared from the ``_routes`` method of a ``Server`` subclass::

        class ExampleServer(Server):
            def _routes(self):
                self._get("/organizations/:organization_id/projects/:id", ProjectsController, "show")

    A GET request for ``"/organizations/4/projects/12"`` is then handled by a new ``ProjectsController`` whose
    ``show`` action receives ``organization_id="4"`` and ``id="12"``. The same parameters are what the controller's
    resource declarations use to find the organization and the project before the action is called.

    Each segment of a pattern may hold one parameter, written ``:name`` and optionally preceded by literal text
    (``"/v:version/projects"``). A parameter matches one or more characters other than a slash. A trailing slash in
    the request path is ignored.
    """

    # HTTP methods from RFC 9110 and RFC 5789 which a REST API is expected to handle
    ALLOWABLE_METHODS = ["get", "head", "post", "put", "patch", "delete", "options"]

    # path-absolute rule of RFC 3986 (Appendix A)
    UNRESERVED = "[A-Za-z0-9-._~]"
    PCT_ENCODED = "%[0-9A-Fa-f]{2}"
    SUB_DELIMS = "[!$&'()*+,;=]"
    PCHAR = f"{UNRESERVED}|{PCT_ENCODED}|{SUB_DELIMS}|[:@]"
    SEGMENT = f"(?:{PCHAR})*"
    SEGMENT_NZ = f"(?:{PCHAR})+"
    PATH_ABSOLUTE = f"\\/(?:{SEGMENT_NZ}(?:\\/{SEGMENT})*){{0,1}}"
    PATH_ABSOLUTE_REGEX = re.compile(f"^{PATH_ABSOLUTE}$")

    @staticmethod
    def validate_abs_path(path: str) -> bool:
        return bool(Route.PATH_ABSOLUTE_REGEX.match(path))

    @staticmethod
    def split_path(path: str) -> list[str]:
        """``"/projects/12/"`` -> ``["projects", "12"]``"""
        return [segment for segment in path.strip("/").split("/") if segment]

    def __init__(self, method: str, pattern: str, controller: type[Controller], action: str) -> None:
        """
        :raises: :class:`TypeError`: An argument is of an incorrect type
        :raises: :class:`InvalidMethod`: The HTTP method is not one of ``ALLOWABLE_METHODS``
        :raises: :class:`InvalidPathOrPattern`: The pattern is not a valid path or declares invalid parameters
        :raises: :class:`ActionUndefined`: The controller has no method named after the action
        """
        if not isinstance(method, str) or not isinstance(pattern, str) or not isinstance(action, str):
            raise TypeError("route method, pattern and action must be of type str")

        if not isinstance(controller, type) or not issubclass(controller, Controller):
            raise TypeError("route controller must be a subclass of Controller")

        method = method.lower()

        if method not in Route.ALLOWABLE_METHODS:
            raise InvalidMethod(f"route defined with invalid method '{method}'")

        if not Route.validate_abs_path(pattern):
            raise InvalidPathOrPattern(f"route defined with pattern '{pattern}' which is not a valid URI path")

        if not callable(getattr(controller, action, None)):
            raise ActionUndefined(
                f"route defined with action '{action}' which does not exist in controller '{controller.__name__}'"
            )

        self._method = method
        self._pattern = pattern
        self._controller = controller
        self._action = action
        self._regex = self._compile_pattern()

    def __repr__(self) -> str:
        return f"Route({self.method}, {self.pattern}, {self.controller.__name__}, {self.action})"

    def _compile_pattern(self) -> re.Pattern[str]:
        """Turns the pattern into a regular expression with a named group per parameter, so that
        ``"/organizations/:organization_id"`` matches paths like ``"/organizations/4"``.

        :raises: :class:`InvalidPathOrPattern`: A segment declares several parameters, or a parameter name is missing,
            repeated or not an identifier
        """
        names: set[str] = set()
        parts: list[str] = []

        for segment in Route.split_path(self.pattern):
            if segment.count(":") > 1:
                raise InvalidPathOrPattern(f"pattern '{self.pattern}' contains multiple parameters in a single segment")

            if ":" not in segment:
                parts.append(re.escape(segment))
                continue

            prefix, name = segment.split(":")

            if not name.isidentifier():
                raise InvalidPathOrPattern(f"pattern '{self.pattern}' contains a parameter with invalid name '{name}'")

            if name in names:
                raise InvalidPathOrPattern(f"pattern '{self.pattern}' contains parameter '{name}' more than once")

            names.add(name)
            parts.append(f"{re.escape(prefix)}(?P<{name}>[^/]+)")

        return re.compile("^/" + "/".join(parts) + "/?$")

    def capture_params(self, path: str) -> Mapping[str, str]:
        """
        :raises: :class:`InvalidPathOrPattern`: The given path is invalid
        :raises: :class:`PatternMismatch`: The given path does not match the route's pattern
        """
        if not Route.validate_abs_path(path):
            raise InvalidPathOrPattern(f"path '{path}' is not a valid URI")

        match = self._regex.match(path)

        if not match:
            raise PatternMismatch(f"path '{path}' does not match route pattern '{self.pattern}'")

        return match.groupdict()

    def matches_path(self, path: str) -> bool:
        """
        :raises: :class:`InvalidPathOrPattern`: The given path is invalid
        """
        try:
            self.capture_params(path)
        except PatternMismatch:
            return False

        return True

    def matches(self, method: str, path: str) -> bool:
        """
        :raises: :class:`InvalidMethod`: The given method is invalid
        :raises: :class:`InvalidPathOrPattern`: The given path is invalid
        """
        method = method.lower()

        if method not in Route.ALLOWABLE_METHODS:
            raise InvalidMethod(f"method '{method}' is not an allowable HTTP method")

        return self.method == method and self.matches_path(path)

    def new_controller(self, *args: Any, **kwargs: Any) -> Controller:
        return self.controller(*args, **kwargs)

    async def call_action(self, controller_inst: Controller, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Loads and authorizes the resources declared by the controller for the route's action and then calls the
        action itself.

        :raises: :class:`ParamDecodeError`: The request parameters are malformed and cannot be parsed
        :raises: :class:`ActionDispatchError`: The request parameters do not match the action's method signature
        :raises: :class:`AccessDenied`: A resource declared by the controller may not be accessed
        :raises: :class:`RecordNotFound`: A resource declared by the controller cannot be found
        :raises: :class:`Exception`: An uncaught exception occurred within the body of the action

        :returns: The result returned by the action
        """
        if not isinstance(controller_inst, self.controller):
            raise TypeError(
                f"the given controller object '{controller_inst.__class__.__name__}' is not an instance of the route's "
                f"controller class {self.controller.__name__}"
            )

        if params is None:
            params = controller_inst.get_params()

        controller_inst.run_resource_hooks()
        action_func = getattr(controller_inst, self.action)

        try:
            if iscoroutinefunction(action_func):
                return await action_func(**params)

            return action_func(**params)

        except TypeError as err:
            # The action cannot be called with the given parameters when the error is raised from this frame
            if err.__traceback__ and err.__traceback__.tb_next is None:
                raise ActionDispatchError(str(err)) from None

            raise

    @property
    def method(self) -> str:
        return self._method

    @property
    def pattern(self) -> str:
        return self._pattern

    @property
    def controller(self) -> type[Controller]:
        return self._controller

    @property
    def action(self) -> str:
        return self._action
