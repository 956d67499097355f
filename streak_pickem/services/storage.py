"""
Durable key-value storage

getItem/setItem style access over the storage_items table. Values are
opaque strings (JSON written by the stores).
"""

import logging

from streak_pickem import db
from streak_pickem.models import StorageItem

logger = logging.getLogger(__name__)


class DatabaseStorage:
    """Key-value storage persisted with SQLAlchemy"""

    def get_item(self, key):
        item = db.session.get(StorageItem, key)
        return item.value if item else None

    def set_item(self, key, value):
        try:
            item = db.session.get(StorageItem, key)
            if item is None:
                item = StorageItem(key=key, value=value)
                db.session.add(item)
            else:
                item.value = value
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error writing storage item {key}: {e}")
            raise

