"""Cache keys for availability responses.

Availability is advisory; admission is always decided by the ledger.
"""

from django.core.cache import cache

SESSION_LIST_KEY = "availability:list"


def session_key(session_id) -> str:
    return f"availability:{session_id}"


def roles_key(session_id) -> str:
    return f"availability:{session_id}:roles"


def invalidate_session(session_id) -> None:
    cache.delete_many([SESSION_LIST_KEY, session_key(session_id), roles_key(session_id)])
