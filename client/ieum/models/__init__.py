# client/ieum/models/__init__.py
from .stored_item import StoredItem

__all__ = ["StoredItem"]
