"""
Node Store - SQLAlchemy-backed node graph used by the sync engine

Exposes the graph operations the sync engine relies on (resolve, create,
link, keep-alive) and the garbage collection that removes nodes no run
kept alive. Every operation pushes its own app context and holds the
shared database lock, so the store can be used from worker threads.
"""
import json
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from ...exceptions import NodeNotFoundError
from ...extensions import db, db_lock
from ...models import Node
from ...utils.logger import get_logger
from .identity import TYPE_FILE

logger = get_logger('node_store')


@dataclass(frozen=True)
class NodeView:
    """Read-only snapshot of a stored node."""
    id: str
    type: str
    parent_id: Optional[str] = None
    content_digest: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_model(cls, node: Node) -> 'NodeView':
        return cls(
            id=node.id,
            type=node.type,
            parent_id=node.parent_id,
            content_digest=node.content_digest,
            payload=node.get_payload(),
        )


class NodeStore:
    """Node graph access bound to one sync run.

    Nodes created or kept alive through this store are stamped with
    ``run_id``; collect_garbage() later drops everything the run did not
    reach.

    Example:
        >>> store = NodeStore(app, run_id=7)
        >>> store.create('etsy_listing_42', None, 'FeaturedEtsyListing', digest, payload)
        >>> store.keep_alive('etsy_listing_42')
        >>> NodeStore.collect_garbage(app, run_id=7)
    """

    def __init__(self, app, run_id: Optional[int] = None):
        self._app = app
        self.run_id = run_id

    @contextmanager
    def _session(self):
        with db_lock, self._app.app_context():
            try:
                yield db.session
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                raise

    def resolve(self, node_id: Optional[str]) -> Optional[NodeView]:
        """Look up a node; None when the id is empty or unknown."""
        if not node_id:
            return None
        with self._session() as session:
            node = session.get(Node, node_id)
            return NodeView.from_model(node) if node else None

    def create(
        self,
        node_id: str,
        parent_id: Optional[str],
        node_type: str,
        content_digest: str,
        payload: Dict[str, Any]
    ) -> NodeView:
        """Create a node, or overwrite it when the id already exists."""
        with self._session() as session:
            node = session.get(Node, node_id)
            if node is None:
                node = Node(id=node_id)
                session.add(node)
            node.parent_id = parent_id
            node.type = node_type
            node.content_digest = content_digest
            node.payload = json.dumps(payload, ensure_ascii=False, default=str)
            node.created_run_id = self.run_id
            node.touched_run_id = self.run_id
            session.flush()
            return NodeView.from_model(node)

    def link(self, parent_id: str, child_id: str) -> None:
        """Attach ``child_id`` under ``parent_id``.

        Raises:
            NodeNotFoundError: If either node does not exist
        """
        with self._session() as session:
            parent = session.get(Node, parent_id)
            child = session.get(Node, child_id)
            if parent is None or child is None:
                missing = parent_id if parent is None else child_id
                raise NodeNotFoundError(f"Cannot link {child_id} under {parent_id}: {missing} not found")
            child.parent_id = parent.id

    def keep_alive(self, node_id: str) -> bool:
        """Mark a node as reached by this run.

        Returns:
            False when the node does not exist
        """
        with self._session() as session:
            node = session.get(Node, node_id)
            if node is None:
                logger.warning(f"[NodeStore] keep-alive for unknown node {node_id}")
                return False
            node.touched_run_id = self.run_id
            return True

    @staticmethod
    def collect_garbage(app, run_id: int) -> int:
        """Delete every node the given run did not keep alive.

        A node is alive when the run or any later run created or touched it,
        or when its parent is alive and was not re-created after the node
        itself. The second rule keeps untouched descendants of reused subtrees
        while dropping children that a rebuild of their parent left behind.
        Downloaded files of collected File nodes are removed from MEDIA_PATH.

        Returns:
            Number of deleted nodes
        """
        with db_lock, app.app_context():
            rows = db.session.query(
                Node.id, Node.parent_id, Node.type, Node.payload, Node.created_run_id, Node.touched_run_id
            ).all()
            by_id = {row.id: row for row in rows}
            alive: Dict[str, bool] = {}

            def is_alive(node_id: str) -> bool:
                if node_id in alive:
                    return alive[node_id]
                row = by_id[node_id]
                result = (row.touched_run_id or 0) >= run_id
                if not result and row.parent_id in by_id:
                    parent = by_id[row.parent_id]
                    result = is_alive(parent.id) and (parent.created_run_id or 0) <= (row.created_run_id or 0)
                alive[node_id] = result
                return result

            dead = [node_id for node_id in by_id if not is_alive(node_id)]
            if not dead:
                return 0

            try:
                # Chunked to stay under SQLite's bound parameter limit
                for start in range(0, len(dead), 500):
                    chunk = dead[start:start + 500]
                    Node.query.filter(Node.id.in_(chunk)).delete(synchronize_session=False)
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                raise

            for node_id in dead:
                row = by_id[node_id]
                if row.type == TYPE_FILE:
                    _remove_media_file(app.config['MEDIA_PATH'], row.payload)

            logger.info(f"[NodeStore] Garbage collected {len(dead)} nodes after run {run_id}")
            return len(dead)


def _remove_media_file(media_path: str, raw_payload: Optional[str]) -> None:
    """Delete the downloaded file a collected File node pointed at."""
    try:
        relative_path = json.loads(raw_payload or '{}').get('relative_path')
    except (json.JSONDecodeError, AttributeError):
        relative_path = None
    if not relative_path:
        return
    filepath = os.path.join(media_path, os.path.basename(relative_path))
    if not os.path.exists(filepath):
        return
    try:
        os.remove(filepath)
        logger.debug(f"[NodeStore] Removed media file {filepath}")
    except OSError as e:
        logger.warning(f"[NodeStore] Failed to remove media file {filepath}: {e}")
