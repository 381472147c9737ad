"""HTTP surface for reservation drafts."""

from .routes import (
    DraftSessionStore,
    get_session_store,
    router,
    set_session_store,
)

__all__ = [
    "DraftSessionStore",
    "get_session_store",
    "router",
    "set_session_store",
]
