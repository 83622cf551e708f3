# notenex/models/common_models.py
from typing import Annotated, Any, Optional
from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field
from datetime import datetime, timezone
import uuid
from bson import ObjectId

def _validate_document_id(v: Any) -> str:
    # Ids written by the note editor are opaque strings; older documents may carry an ObjectId
    if isinstance(v, (ObjectId, uuid.UUID)):
        return str(v)
    if isinstance(v, str):
        if not v.strip():
            raise ValueError("Document id must not be empty")
        return v
    raise ValueError(f"Value must be a string, ObjectId or UUID, got {type(v)}")

PyObjectId = Annotated[str, BeforeValidator(_validate_document_id)]


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive datetimes unless the client is tz-aware; they are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseDBModel(BaseModel):
    id: PyObjectId = Field(default_factory=lambda: str(uuid.uuid4()), alias="_id")
    createdAt: UTCDateTime = Field(default_factory=utc_now)
    updatedAt: UTCDateTime = Field(default_factory=utc_now)

    model_config = ConfigDict(
        populate_by_name=True, # allow the _id alias
        from_attributes=True,
    )
