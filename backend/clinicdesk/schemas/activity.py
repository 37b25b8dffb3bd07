from datetime import datetime

from pydantic import BaseModel


class ActivityOut(BaseModel):
    id: str
    user_id: str | None
    user_name: str | None
    action: str
    entity_type: str
    entity_id: str | None
    entity_code: str | None
    clinic_id: str | None
    summary: str | None
    details: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}
