from liars import db
import json
import time


class GameSnapshot(db.Model):
    """Latest serialized session. A single row keyed by ``SNAPSHOT_ROW_ID``."""
    __tablename__ = 'game_snapshot'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(64), nullable=False, index=True)
    payload = db.Column(db.Text, nullable=False)  # JSON-encoded session snapshot
    updated_at = db.Column(db.Float, nullable=False, default=time.time)

    SNAPSHOT_ROW_ID = 1

    @property
    def state(self):
        return json.loads(self.payload)

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'updated_at': self.updated_at,
        }
