"""
Blueprints package: shared request helpers.

The acting profile is identified by the caller: ``X-User-Id`` header first,
then ``user_id`` in the JSON body or query string. Authentication itself
happens upstream.
"""

from flask import request

from sample_tracker.services.cache_service import invalidate_for
from sample_tracker.utils.helpers import db_commit_or_error


def current_actor_id():
    """Resolve the acting profile id for this request (None if absent)."""
    actor_id = request.headers.get("X-User-Id")
    if actor_id:
        return actor_id
    data = request.get_json(silent=True) if request.is_json else None
    if isinstance(data, dict) and data.get("user_id"):
        return data["user_id"]
    return request.args.get("user_id")


def commit_and_invalidate(kind):
    """Commit the unit of work, then drop the cache entries *kind* makes stale.

    Returns None on success or an error response tuple, like
    ``db_commit_or_error``. The cache is only touched after a successful commit.
    """
    err = db_commit_or_error()
    if err:
        return err
    invalidate_for(kind)
    return None
