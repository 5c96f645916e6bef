"""
Durable key/value cache model
"""
import json
from datetime import datetime
from ..extensions import db


class CacheEntry(db.Model):
    """One cache value, stored as JSON"""
    __tablename__ = 'cache_entries'

    key = db.Column(db.String(255), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def get_value(self):
        return json.loads(self.value)

    def __repr__(self):
        return f'<CacheEntry {self.key}>'
