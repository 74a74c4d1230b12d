# backend/nursery/locks/schemas.py
from pydantic import BaseModel


class LockOut(BaseModel):
    key: str  # "lock:update:landing-page"
    resource: str
    operation: str
    held: bool
    remaining_ms: int | None = None


class LockReleaseOut(BaseModel):
    key: str
    released: bool
