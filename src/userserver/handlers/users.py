"""
=============================================================================
USER HANDLERS
=============================================================================

The three operations on the "users" collection:

    GET  /users, /users/     → list    200 [ {id, name}, ... ]
    GET  /users/<digits>     → get     200 {id, name}   | 404
    POST /users, /users/     → create  200 {id, name}   | 400

Each handler follows the same shape:

    1. talk to the store     (the store takes and releases its own lock)
    2. serialize the result  (no lock held any more)
    3. return ONE response   (errors are converted right here, nothing
                              propagates past the handler)

=============================================================================
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok, bad_request, not_found, internal_error
from ..http.router import Router, PathPattern
from ..store import User, UserStore


logger = logging.getLogger(__name__)


# Route patterns. The id capture is ASCII digits only.
USERS_COLLECTION = PathPattern("/users", trailing_slash=True)
USERS_MEMBER = PathPattern("/users/:id", params={"id": r"[0-9]+"})


class UserHandler:
    """
    Request handlers bound to one UserStore.

    The store is injected, never looked up globally, so tests can hand
    in a fixture store (or a mock).
    """

    def __init__(self, store: UserStore):
        self.store = store

    def list(self, request: HTTPRequest) -> HTTPResponse:
        users = self.store.snapshot()
        try:
            return ok([user.to_dict() for user in users])
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize {len(users)} users: {e}")
            return internal_error()

    def get(self, request: HTTPRequest) -> HTTPResponse:
        key = request.path_params.get("id")
        if not key:
            # Route matched but produced no capture: stop here rather
            # than look up a key we don't have.
            return not_found()

        user = self.store.get(key)
        if user is None:
            return not_found()

        try:
            return ok(user.to_dict())
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize user at {key!r}: {e}")
            return internal_error()

    def create(self, request: HTTPRequest) -> HTTPResponse:
        try:
            user = User.from_json(request.body)
        except ValueError as e:
            logger.info(f"Rejected create from {request.client_address[0] or '-'}: {e}")
            return bad_request()

        # The echo is encoded before the write: a record that can't be
        # serialized never reaches the store.
        try:
            response = ok(user.to_dict())
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize created user {user.id!r}: {e}")
            return internal_error()

        # Upsert: no existence check, no generated id.
        self.store.put(user)
        return response


def build_router(store: UserStore) -> Router:
    """
    Route table for the users API, in priority order.

    Anything not listed here (other methods, other paths, non-numeric
    ids, extra segments) gets 404 from the router.
    """
    users = UserHandler(store)

    router = Router()
    router.add("GET", USERS_COLLECTION, users.list, name="list_users")
    router.add("GET", USERS_MEMBER, users.get, name="get_user")
    router.add("POST", USERS_COLLECTION, users.create, name="create_user")
    return router
