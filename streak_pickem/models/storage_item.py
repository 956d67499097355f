from datetime import datetime, timezone

from streak_pickem import db


class StorageItem(db.Model):
    """Durable key-value row backing per-user state and the shared leaderboard"""

    __tablename__ = "storage_items"

    key = db.Column(db.String(255), primary_key=True)
    value = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<StorageItem {self.key}>"
