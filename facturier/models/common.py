from pydantic import BaseModel, Field
from datetime import datetime, timezone
import uuid

def gen_id() -> str:
    return str(uuid.uuid4())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class TimeStamped(BaseModel):
    # horodatages UTC avec fuseau ; updated_at est rafraîchi par le dépôt à chaque modification
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
