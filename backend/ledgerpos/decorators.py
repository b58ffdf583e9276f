# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .identity import resolve_actor


def require_actor(f):
    """
    Require an identified actor for the request.

    Sets g.actor to the Actor returned by the configured identity provider.
    Authorization of the specific action happens in the service layer, so
    every entry point (HTTP, CLI, tests) goes through the same resolver.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = resolve_actor(request)
        if actor is None:
            return jsonify({"error": "Authentication required"}), 401

        g.actor = actor
        return f(*args, **kwargs)

    return decorated_function
