"""Database infrastructure for SQLModel.

Usage:
    from publisher.db.engine import get_session_dependency

    @router.get("/connections")
    def list_connections(session: Session = Depends(get_session_dependency)):
        ...
"""

from publisher.db.engine import engine, get_session_dependency, init_db

__all__ = [
    "engine",
    "get_session_dependency",
    "init_db",
]
