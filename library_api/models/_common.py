import uuid
from datetime import datetime


def new_id() -> str:
    return str(uuid.uuid4())


def iso(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
