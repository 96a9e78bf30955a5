"""
=============================================================================
USERSERVER
=============================================================================

A small JSON users service on a hand-built HTTP/1.1 server.

    GET  /users         list every user          200 [{"id":..,"name":..}, ...]
    GET  /users/<n>     one user by lookup key   200 {"id":..,"name":..} | 404
    POST /users         create or replace        200 {"id":..,"name":..} | 400

Every error body is one of:

    {"error": "bad request"}
    {"error": "not found"}
    {"error": "internal server error"}

Run it:

    python -m userserver --port 8080
    userserver --seed roster.json

Or embed it:

    from userserver import create_app, User
    app = create_app({"1": User("1001", "Komi Shouko")})
    app.run()

=============================================================================
"""

__version__ = "1.0.0"

from .store import User, UserStore
from .config import ServerConfig
from .server import HTTPServer, create_app

__all__ = [
    "User",
    "UserStore",
    "ServerConfig",
    "HTTPServer",
    "create_app",
    "__version__",
]
