from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class Notification(BaseModel):
    id: int
    type: str
    title: str
    message: str
    related_type: Optional[str] = None
    related_id: Optional[int] = None
    threshold: Optional[int] = None
    data: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True
