"""
Request handlers.

    users.py    list / get / create on the users collection, plus
                build_router() which wires them into a route table
"""

from .users import UserHandler, build_router, USERS_COLLECTION, USERS_MEMBER

__all__ = [
    "UserHandler",
    "build_router",
    "USERS_COLLECTION",
    "USERS_MEMBER",
]
