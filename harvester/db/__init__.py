"""Database layer package.

Public re-exports so callers can write::

    from harvester.db import get_connection, init_db
    from harvester.db import posts
"""

from harvester.db.connection import get_connection
from harvester.db.migrations import init_db
from harvester.db import posts

__all__ = ["get_connection", "init_db", "posts"]
