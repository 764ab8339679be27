import re
import time
import traceback
from inspect import iscoroutinefunction
from typing import TYPE_CHECKING, Any, Optional

from tornado.web import RequestHandler

from resourcegate import resourcegate_logging
from resourcegate.engine.errors import AccessDenied, RecordNotFound
from resourcegate.web.default_controller import DefaultController
from resourcegate.web.errors import ActionDispatchError, ActionIncompleteError, ActionUndefined, ParamDecodeError

if TYPE_CHECKING:
    from resourcegate.web.controller import Controller
    from resourcegate.web.route import Route
    from resourcegate.web.server import Server

logger = resourcegate_logging.init_logging("web")

# Exceptions raised by a route action (or by the resource hooks which run before it), mapped to the action of
# DefaultController which responds to them
ERROR_ACTIONS: tuple[tuple[type[Exception], str], ...] = (
    (AccessDenied, "access_denied"),
    (RecordNotFound, "record_not_found"),
    (ParamDecodeError, "malformed_params"),
    (ActionDispatchError, "action_dispatch_error"),
)


class ActionHandler(RequestHandler):
    """Tornado request handler which finds the route matching each request and calls its action on a new instance
    of the route's controller. The resources declared by the controller are loaded and authorized first.

    Requests which cannot be routed, and actions which fail, are answered by ``DefaultController``. Of note,
    ``AccessDenied`` produces a 403 response, ``RecordNotFound`` a 404 and any other uncaught exception a 500 once its
    traceback has been logged.

    One handler is created by Tornado per request, with the ``Server`` it was registered by.
    """

    # pylint: disable=abstract-method

    def initialize(self, server: "Server") -> None:
        # pylint: disable=attribute-defined-outside-init

        self._server: "Server" = server
        self._matching_route: Optional["Route"] = None
        self._controller: Optional["Controller"] = None
        self._default_controller: "Controller" = DefaultController(self)
        self._action_call_stack: list[tuple["Controller", str]] = []
        self._received_at: int = time.time_ns()
        self._error_message: Optional[str] = None

    def _log_action(self, controller: "Controller", action: str) -> None:
        self._action_call_stack.append((controller, action))
        logger.debug("Invoking action '%s' of %s", action, type(controller).__name__)

    def _log_exception(self, err: BaseException) -> None:
        logger.error("An uncaught exception occurred while handling a request:")

        for line in "".join(traceback.format_exception(err)).splitlines():
            if line.strip():
                logger.error(line)

    async def _invoke_default_action(self, action: str, ignore_param_errors: bool = False) -> None:
        action_func = getattr(self.default_controller, action, None)

        if not callable(action_func):
            raise ActionUndefined(f"The default controller has no '{action}' action")

        self._log_action(self.default_controller, action)
        params = self.default_controller.get_params(ignore_errors=ignore_param_errors)

        if iscoroutinefunction(action_func):
            await action_func(**params)
        else:
            action_func(**params)

    def _invoke_default_action_sync(self, action: str) -> None:
        # Drives the coroutine to completion from synchronous Tornado callbacks such as write_error
        coroutine = self._invoke_default_action(action, ignore_param_errors=True)

        try:
            while True:
                coroutine.send(None)
        except StopIteration:
            pass

    def _error_action(self, err: Exception) -> str:
        for error_class, action in ERROR_ACTIONS:
            if isinstance(err, error_class):
                return action

        self._log_exception(err)
        return "action_exception"

    def _ensure_response(self, fallback: bool = True) -> None:
        """Logs an error if no response has been produced and, unless ``fallback`` is false, responds with the
        ``incomplete_action`` action instead (or a bare 500 if that also fails to respond).
        """
        if self.finished:
            return

        if self._action_call_stack:
            controller, action = self._action_call_stack[-1]
            message = f"action '{action}' in controller '{type(controller).__name__}' did not produce a response"
        else:
            message = "no action was invoked to produce a response"

        self._log_exception(ActionIncompleteError(message))

        if fallback:
            self._invoke_default_action_sync("incomplete_action")

            if not self.finished:
                self._ensure_response(fallback=False)
                self.default_controller.send_response(500)

    def _process_request_id(self) -> None:
        resourcegate_logging.request_id_var.set(self.request_id)
        self.set_header("X-Request-ID", self.request_id)

    async def prepare(self) -> None:
        # pylint: disable=invalid-overridden-method

        self._process_request_id()
        logger.info("%s %s", self.request.method, self.request.path)
        route = self.server.first_matching_route(self.request.method, self.request.path)

        if route:
            # pylint: disable=attribute-defined-outside-init
            self._matching_route = route
            self._controller = route.new_controller(self)
        elif self.server.first_matching_route(None, self.request.path):
            await self._invoke_default_action("method_not_allowed", ignore_param_errors=True)
        else:
            await self._invoke_default_action("not_found", ignore_param_errors=True)

    async def process_request(self) -> None:
        if self.matching_route and self.controller:
            self._log_action(self.controller, self.matching_route.action)

            try:
                await self.matching_route.call_action(self.controller)
            except Exception as err:
                if isinstance(err, AccessDenied):
                    logger.warning("Access denied: action '%s' on %r", err.action, err.subject)
                    self._error_message = err.message
                elif isinstance(err, RecordNotFound):
                    logger.warning("Record not found: %s", err)

                await self._invoke_default_action(self._error_action(err), ignore_param_errors=True)

        self._ensure_response()

    def write_error(self, status_code: int, **kwargs: Any) -> None:
        exc_info = kwargs.get("exc_info")

        if status_code == 405 and exc_info:
            # Tornado rejects methods the handler does not define with a 405 before prepare() is called, but
            # RFC 9110 calls for a 501
            self._process_request_id()
            logger.info("%s %s", self.request.method, self.request.path)
            self._invoke_default_action_sync("unsupported_method")
        elif exc_info:
            self._log_exception(exc_info[1])
            self._invoke_default_action_sync("handler_exception")
        else:
            self.default_controller.send_response(status_code)

        self._ensure_response()

    def on_finish(self) -> None:
        status = self.get_status()
        level = "info" if status < 400 else "warning" if status < 500 else "error"
        getattr(logger, level)("Sent %s in %s", status, self.elapsed_time)

    async def get(self) -> None:
        await self.process_request()

    async def head(self) -> None:
        await self.process_request()

    async def post(self) -> None:
        await self.process_request()

    async def put(self) -> None:
        await self.process_request()

    async def patch(self) -> None:
        await self.process_request()

    async def delete(self) -> None:
        await self.process_request()

    async def options(self) -> None:
        await self.process_request()

    @property
    def server(self) -> "Server":
        return self._server

    @property
    def matching_route(self) -> Optional["Route"]:
        return self._matching_route

    @property
    def controller(self) -> Optional["Controller"]:
        return self._controller

    @property
    def default_controller(self) -> "Controller":
        return self._default_controller

    @property
    def action_call_stack(self) -> list[tuple["Controller", str]]:
        return self._action_call_stack.copy()

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def elapsed_time(self) -> str:
        elapsed_ms = (time.time_ns() - self._received_at) / 1_000_000

        if elapsed_ms < 1000:
            return f"{elapsed_ms:.1f}ms"

        return f"{elapsed_ms / 1000:.2f}s"

    @property
    def request_id(self) -> str:
        # Only word characters are kept from the X-Request-ID header, up to the length of a UUID
        return re.sub(r"\W+", "", self.request.headers.get("X-Request-ID") or "")[:36]
