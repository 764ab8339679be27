import http.client
import json
import re
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Union

import inflection
from tornado.escape import parse_qs_bytes

from resourcegate.engine.additions import ControllerAdditions
from resourcegate.engine.context import RequestContext
from resourcegate.policy.manager import PolicyManager, get_policy_manager
from resourcegate.web.errors import ParamDecodeError

if TYPE_CHECKING:
    from tornado.httputil import HTTPHeaders

    from resourcegate.policy.provider import AuthorizationPolicy
    from resourcegate.web.action_handler import ActionHandler

Params = Mapping[str, Any]

# Parameter sources, from lowest to highest precedence
PARAM_TYPES = ("query", "json", "path")


class Controller(ControllerAdditions, RequestContext):
    """Base class of the controllers which hold the actions of a resourcegate server, and the request context
    against which their resources are loaded and authorized.

    Resources are declared from the ``_resources`` class method. Before a routed action is called, each declared
    resource is loaded into the attribute store and authorized against the policy of the current identity::

        class ProjectsController(Controller):
            @classmethod
            def _resources(cls):
                cls.load_and_authorize_resource("organization")
                cls.load_and_authorize_resource(through="organization")

            def current_identity(self):
                return self.request_headers.get("X-User")

            def show(self, **params):
                self.respond(200, "Success", self.get_attribute("project").render())

    Actions receive the request parameters as keyword arguments: those captured from the path, those of the query
    string and, for JSON requests, the members of the body object. When a name is given by more than one source,
    the path wins over the body, which wins over the query string.

    The controller path (``"projects"`` above, from the class name) gives the default resource name and its
    namespace; set the ``path`` class attribute to choose another, e.g. ``"admin/projects"``. Policies are created
    by the global policy manager unless ``policy_manager`` is set.
    """

    JSON_MEDIA_TYPE_REGEX = re.compile(r"^application/(?:[a-z-.]+\+)?json")

    path: Optional[str] = None

    policy_manager: Optional[PolicyManager] = None

    @staticmethod
    def decode_url_query(query: Union[str, bytes]) -> Mapping[str, Union[str, list[str]]]:
        """Decodes a query string, giving a list of values for the keys which appear more than once.

        :raises: :class:`ParamDecodeError`: The query string is malformed
        """
        try:
            decoded = parse_qs_bytes(query)
        except ValueError as err:
            raise ParamDecodeError(f"could not parse data as query string: {err}") from err

        return {
            name: values[0].decode() if len(values) == 1 else [value.decode() for value in values]
            for name, values in decoded.items()
        }

    @staticmethod
    def prepare_http_body(body: Any, content_type: Optional[str] = None) -> tuple[Optional[bytes], Optional[str]]:
        """Encodes a response body, inferring its media type when none is given. Dicts and lists are serialised as
        JSON and other values as text.

        :raises: :class:`TypeError`: ``body`` holds values which cannot be serialised as JSON
        :raises: :class:`ValueError`: ``body`` holds values which cannot be serialised as JSON
        """
        if content_type:
            content_type = content_type.lower().strip()

        match (body, content_type):
            case (None, _):
                return (None, content_type)
            case ("", _):
                return (b"", "text/plain; charset=utf-8")
            case (str(), "application/json"):
                return (body.encode("utf-8"), "application/json")
            case (dict() | list(), "application/json" | None):
                return (json.dumps(body, allow_nan=False, indent=4).encode("utf-8"), "application/json")
            case (_, "text/plain" | None):
                return (str(body).encode("utf-8"), "text/plain; charset=utf-8")
            case _:
                return (body, content_type)

    def __new__(cls, action_handler: "ActionHandler", *args: Any, **kwargs: Any) -> "Controller":
        if cls is Controller:
            raise TypeError("Controller must be subclassed before it can be instantiated")
        return super().__new__(cls)

    def __init__(self, action_handler: "ActionHandler") -> None:
        self._action_handler = action_handler
        self._decoded: dict[str, Params] = {}
        self._policy: Optional["AuthorizationPolicy"] = None

    def send_response(
        self, code: int = 200, status: Optional[str] = None, body: Any = None, content_type: Optional[str] = None
    ) -> None:
        """Writes the response and finishes the request. The status message defaults to the standard reason phrase
        of ``code``.

        :raises: :class:`TypeError`: ``code`` is not an int or ``status`` is not a str
        """
        if not isinstance(code, int):
            raise TypeError(f"status code '{code}' is not of type int")

        if status is not None and not isinstance(status, str):
            raise TypeError(f"status message '{status}' is not of type str")

        handler = self.action_handler
        handler.set_status(code, status or http.client.responses[code])
        payload, media_type = Controller.prepare_http_body(body, content_type)

        if media_type:
            handler.set_header("Content-Type", media_type)

        if payload:
            handler.write(payload)

        handler.finish()

    def respond(self, code: int = 200, status: Optional[str] = None, data: Any = None) -> None:
        """Sends ``data`` as JSON, wrapped in an envelope giving the status::

            {"code": 200, "status": "Success", "results": {...}}

        ``status`` is also used as the HTTP status message.
        """
        status = status or http.client.responses[code]
        self.send_response(code, status, {"code": code, "status": status, "results": {} if data is None else data})

    def get_params(self, *param_types: str, ignore_errors: bool = False) -> Params:
        """Merges the request parameters from the given sources (``"path"``, ``"query"``, ``"json"``, or ``"all"``,
        which is the default).

        :raises: :class:`ParamDecodeError`: Parameters from one of the sources are malformed (unless
            ``ignore_errors`` is set, in which case that source is left out)
        """
        requested = set(PARAM_TYPES) if not param_types or "all" in param_types else set(param_types)
        unknown = requested - set(PARAM_TYPES)

        if unknown:
            raise ValueError(f"unexpected parameter type(s): {', '.join(sorted(unknown))}")

        merged: dict[str, Any] = {}
        malformed = []

        for param_type in PARAM_TYPES:
            if param_type not in requested:
                continue

            try:
                merged.update(getattr(self, f"{param_type}_params"))
            except ParamDecodeError:
                malformed.append(param_type)

        if malformed and not ignore_errors:
            raise ParamDecodeError(f"malformed {' and '.join(malformed)} parameters received in the request")

        return merged

    def _decode_once(self, param_type: str, decode: Callable[[], Params]) -> Params:
        if param_type not in self._decoded:
            self._decoded[param_type] = MappingProxyType(dict(decode()))

        return self._decoded[param_type]

    def _decode_json_body(self) -> Params:
        content_type = self.request_headers.get("Content-Type", "")

        if not self.JSON_MEDIA_TYPE_REGEX.match(content_type) or not self.request_body:
            return {}

        try:
            content = json.loads(self.request_body)
        except json.JSONDecodeError as err:
            raise ParamDecodeError("request body not interpretable as valid JSON") from err

        # Only a JSON object gives parameters
        return content if isinstance(content, dict) else {}

    def current_identity(self) -> Any:
        """The identity making the request, ``None`` for anonymous requests. Override to authenticate requests."""
        return None

    def current_policy(self) -> "AuthorizationPolicy":
        if self._policy is None:
            manager = self.policy_manager or get_policy_manager()
            self._policy = manager.policy_for(self.current_identity())

        return self._policy

    @property
    def action(self) -> str:
        route = self.action_handler.matching_route
        return route.action if route else ""

    @property
    def controller_path(self) -> str:
        if self.path:
            return self.path

        return inflection.underscore(re.sub(r"Controller$", "", type(self).__name__))

    @property
    def action_handler(self) -> "ActionHandler":
        return self._action_handler

    @property
    def request_method(self) -> str:
        return self.action_handler.request.method.upper()

    @property
    def request_headers(self) -> "HTTPHeaders":
        return self.action_handler.request.headers.copy()

    @property
    def request_body(self) -> bytes:
        return self.action_handler.request.body

    @property
    def request_path(self) -> str:
        return self.action_handler.request.path

    @property
    def path_params(self) -> Params:
        route = self.action_handler.matching_route
        return self._decode_once("path", lambda: route.capture_params(self.request_path) if route else {})

    @property
    def query_params(self) -> Params:
        """
        :raises: :class:`ParamDecodeError`: The query string is malformed
        """
        return self._decode_once("query", lambda: Controller.decode_url_query(self.action_handler.request.query))

    @property
    def json_params(self) -> Params:
        """
        :raises: :class:`ParamDecodeError`: The body is not valid JSON
        """
        return self._decode_once("json", self._decode_json_body)

    @property
    def params(self) -> Params:
        """All parameters of the request, leaving out those from malformed sources."""
        return self.get_params(ignore_errors=True)
