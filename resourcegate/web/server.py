import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Iterable, Optional

import tornado.httpserver
import tornado.netutil
import tornado.web

from resourcegate import config, resourcegate_logging
from resourcegate.web.action_handler import ActionHandler
from resourcegate.web.route import Route

if TYPE_CHECKING:
    from resourcegate.web.controller import Controller

logger = resourcegate_logging.init_logging("web")


class Server(ABC):
    """The Server abstract class provides a domain-specific language (DSL) for defining an HTTP server with a set of
    specific endpoints. This is translated into a list of routes (see the ``Route`` class) which is ordered according to
    priority and can be matched against incoming requests based on their HTTP method and URL path.

    Example
    -------

    To use the Server class, inherit from it and implement the required ``_routes`` method::

        class ExampleServer(Server):
            def _routes(self):
                self._resource_routes("/organizations", OrganizationsController)
                self._resource_routes("/organizations/:organization_id/projects", ProjectsController)
                self._post("/projects/:id/archive", ProjectsController, "archive")

    Routes are defined by calling the ``self._get(...)``, ``self._post(...)``, ``self._put(...)``, etc. helper methods,
    or ``self._resource_routes(...)`` which defines the conventional routes for the actions a controller has among
    ``index``, ``new``, ``create``, ``show``, ``edit``, ``update`` and ``destroy``. In the event that multiple routes
    apply to a single request, routes defined earlier take priority over routes defined later.

    Once a server is defined, it can be used by creating a new instance and calling ``start``::

        server = ExampleServer()
        server.start()

    The host and port are taken from the ``[web]`` section of the configuration unless given as options.
    """

    # Conventional routes for resource controllers, in priority order
    RESOURCE_ROUTES = [
        ("get", "", "index"),
        ("get", "/new", "new"),
        ("post", "", "create"),
        ("get", "/:id", "show"),
        ("get", "/:id/edit", "edit"),
        ("put", "/:id", "update"),
        ("patch", "/:id", "update"),
        ("delete", "/:id", "destroy"),
    ]

    def __init__(self, **options: Any) -> None:
        """Initialise server with provided configuration options or default values. This does not bind any socket
        or start accepting requests (this is done by calling the ``server.start()`` instance method).
        """
        self._host: str = config.get("resourcegate", "host", section="web", fallback="127.0.0.1")
        self._port: int = config.getint("resourcegate", "port", section="web", fallback=8880)
        self._max_upload_size: int = config.getint(
            "resourcegate", "max_upload_size", section="web", fallback=104857600
        )

        # Override defaults with values given by the implementing class
        self._setup()

        # If options are set by the caller, use these to override the defaults and those set by the implementing class
        for opt in ["host", "port", "max_upload_size"]:
            if opt in options:
                setattr(self, f"_{opt}", options[opt])

        if not self.host:
            raise ValueError(f"server '{self.__class__.__name__}' cannot be initialised without a value for 'host'")

        self.__routes: list[Route] = []
        self._routes()

        self.__tornado_app = tornado.web.Application([(r".*", ActionHandler, {"server": self})])
        self.__tornado_http_server: Optional[tornado.httpserver.HTTPServer] = None

    async def start_single(self) -> None:
        """Binds the HTTP socket and serves requests until the process is stopped."""
        sockets = tornado.netutil.bind_sockets(int(self.port), address=self.host)
        http_server = tornado.httpserver.HTTPServer(self.__tornado_app, max_buffer_size=self.max_upload_size)
        http_server.add_sockets(sockets)
        self.__tornado_http_server = http_server

        logger.info("Listening on %s:%s (HTTP)...", self.host, self.port)
        await asyncio.Event().wait()

    def start(self) -> None:
        asyncio.run(self.start_single())

    def _setup(self) -> None:
        """Defines values to use in place of the defaults for the various server options. It is suggested that this is
        overriden by the implementing class."""

    @abstractmethod
    def _routes(self) -> None:
        """Defines the routes accepted by the server. Must be overridden by the implementing class and include one
        or more calls to the route helper methods."""

    def _route(self, method: str, pattern: str, controller: type["Controller"], action: str) -> None:
        self.__routes.append(Route(method, pattern, controller, action))

    def _get(self, pattern: str, controller: type["Controller"], action: str) -> None:
        self._route("get", pattern, controller, action)

    def _head(self, pattern: str, controller: type["Controller"], action: str) -> None:
        self._route("head", pattern, controller, action)

    def _post(self, pattern: str, controller: type["Controller"], action: str) -> None:
        self._route("post", pattern, controller, action)

    def _put(self, pattern: str, controller: type["Controller"], action: str) -> None:
        self._route("put", pattern, controller, action)

    def _patch(self, pattern: str, controller: type["Controller"], action: str) -> None:
        self._route("patch", pattern, controller, action)

    def _delete(self, pattern: str, controller: type["Controller"], action: str) -> None:
        self._route("delete", pattern, controller, action)

    def _options(self, pattern: str, controller: type["Controller"], action: str) -> None:
        self._route("options", pattern, controller, action)

    def _resource_routes(
        self, pattern: str, controller: type["Controller"], only: Optional[Iterable[str]] = None
    ) -> None:
        """Creates the conventional routes under ``pattern`` for each action defined by ``controller`` (restricted
        to the actions in ``only``, if given).
        """
        pattern = pattern.rstrip("/")
        actions = set(only) if only is not None else None

        for method, suffix, action in Server.RESOURCE_ROUTES:
            if actions is not None and action not in actions:
                continue

            if callable(getattr(controller, action, None)):
                self._route(method, f"{pattern}{suffix}" or "/", controller, action)

    def first_matching_route(self, method: Optional[str], path: str) -> Optional[Route]:
        """Gets the highest-priority route which matches the given ``method`` and ``path``."""
        if method is None:
            matching_routes = (route for route in self.__routes if route.matches_path(path))
        else:
            matching_routes = (route for route in self.__routes if route.matches(method, path))

        return next(matching_routes, None)

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def max_upload_size(self) -> int:
        return self._max_upload_size

    @property
    def routes(self) -> list[Route]:
        return self.__routes.copy()

    @property
    def tornado_app(self) -> tornado.web.Application:
        return self.__tornado_app

    @property
    def tornado_http_server(self) -> Optional[tornado.httpserver.HTTPServer]:
        return self.__tornado_http_server
