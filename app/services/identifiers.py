import uuid
from typing import Callable, Optional

from bson import ObjectId

IdPredicate = Callable[[Optional[str]], bool]

def is_valid_uuid(value: Optional[str]) -> bool:
    """Canonical 36-character UUID string, as generated for new documents"""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False

def is_valid_object_id(value: Optional[str]) -> bool:
    """24-character hex MongoDB ObjectId"""
    return isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value)

ID_PREDICATES = {
    "uuid": is_valid_uuid,
    "objectid": is_valid_object_id,
}

def get_id_predicate(id_format: str) -> IdPredicate:
    try:
        return ID_PREDICATES[id_format.lower()]
    except KeyError:
        raise ValueError(f"Unknown ID_FORMAT {id_format!r}, expected one of {sorted(ID_PREDICATES)}")
