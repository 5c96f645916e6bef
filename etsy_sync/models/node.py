"""
Node graph model
"""
import json
from datetime import datetime
from ..extensions import db


class Node(db.Model):
    """A materialized record or file asset in the node graph"""
    __tablename__ = 'nodes'

    __table_args__ = (
        db.Index('ix_nodes_type_parent', 'type', 'parent_id'),
    )

    id = db.Column(db.String(255), primary_key=True)
    parent_id = db.Column(db.String(255), db.ForeignKey('nodes.id', ondelete='SET NULL'), index=True)
    type = db.Column(db.String(64), nullable=False, index=True)
    content_digest = db.Column(db.String(64))
    payload = db.Column(db.Text)  # JSON encoded record fields

    # Run bookkeeping for garbage collection
    created_run_id = db.Column(db.Integer, index=True)  # last run that created/overwrote the node
    touched_run_id = db.Column(db.Integer, index=True)  # last run that created or kept the node alive

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def get_payload(self):
        """Decoded payload, empty dict when unset or corrupt"""
        if self.payload:
            try:
                return json.loads(self.payload)
            except (json.JSONDecodeError, TypeError):
                return {}
        return {}

    def to_dict(self, include_children=False):
        data = {
            'id': self.id,
            'parent_id': self.parent_id,
            'type': self.type,
            'content_digest': self.content_digest,
            'payload': self.get_payload(),
            'created_run_id': self.created_run_id,
            'touched_run_id': self.touched_run_id,
            'created_at': self.created_at.isoformat() + 'Z' if self.created_at else None,
            'updated_at': self.updated_at.isoformat() + 'Z' if self.updated_at else None,
        }
        if include_children:
            children = Node.query.filter_by(parent_id=self.id).order_by(Node.id).all()
            data['children'] = [child.id for child in children]
        return data

    def __repr__(self):
        return f'<Node {self.id}>'
