import json
from dataclasses import fields
from typing import Any, Dict, Optional


class BaseModel:
    """Base model class for database entities"""

    # Stored as INTEGER 0/1 in SQLite
    BOOL_FIELDS: tuple = ()
    # Stored as JSON text
    JSON_FIELDS: tuple = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Create instance from a database row, ignoring unknown columns"""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                continue
            if key in cls.BOOL_FIELDS:
                value = bool(value)
            elif key in cls.JSON_FIELDS and isinstance(value, str):
                value = json.loads(value) if value else None
            values[key] = value
        return cls(**values)

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]):
        """Like from_dict but passes None through"""
        return cls.from_dict(row) if row else None

