"""
swarm-comments -- Bee storage package.

Comments and reactions live in two graffiti feeds on a Swarm Bee node.  This
package turns them into the :class:`CommentStorage` operations the engine
consumes.

Quick start::

    from swarm_comments.bee import CommentStore

    store = CommentStore("http://localhost:1633", "my-article")
    latest = await store.read_latest_comment()
    await store.close()
"""

from swarm_comments.bee.client import (
    BeeClient,
    BeeError,
    BeeNotFoundError,
    BeeResponseError,
    is_not_found_error,
)
from swarm_comments.bee.feed import FeedEntry, SwarmFeed
from swarm_comments.bee.store import CommentStorage, CommentStore

__all__: list[str] = [
    "BeeClient",
    "BeeError",
    "BeeNotFoundError",
    "BeeResponseError",
    "is_not_found_error",
    "FeedEntry",
    "SwarmFeed",
    "CommentStorage",
    "CommentStore",
]
