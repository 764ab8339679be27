from resourcegate.web.controller import Controller
from resourcegate.web.route import Route
from resourcegate.web.server import Server

__all__ = ["Controller", "Route", "Server"]
