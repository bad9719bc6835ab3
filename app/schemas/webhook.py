"""
Sanprinon Lite - Webhook Schemas
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class WebhookResult(BaseModel):
    event_id: str
    event_type: str
    # processed | already_processed | ignored
    status: str
    message: Optional[str] = None
    entry_ids: List[UUID] = Field(default_factory=list)
