from datetime import datetime

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: str
    clinic_id: str
    type: str
    category: str
    action: str
    title: str
    message: str
    entity_type: str | None
    entity_id: str | None
    details: dict | None
    read: bool
    read_by: list[str]
    read_at: datetime | None
    created_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCount(BaseModel):
    count: int


class MarkAllRead(BaseModel):
    clinic_id: str | None = None
