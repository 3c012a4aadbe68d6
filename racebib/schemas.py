from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Registration ids double as Xendit external_id
EXTERNAL_ID_PATTERN = r"^[A-Za-z0-9_-]{1,128}$"

class XenditWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    external_id: str = Field(pattern=EXTERNAL_ID_PATTERN)
    status: str

class ParticipantInfo(BaseModel):
    name: str = Field(min_length=1)
    email: str = ""
    phone: str = ""

class CheckoutCreate(BaseModel):
    event_id: str
    category_id: str
    user_id: str
    participant: ParticipantInfo
    base_price: float = Field(ge=0)
    vanity_premium: float = Field(default=0, ge=0)
    vanity_number: Optional[str] = Field(default=None, pattern=r"^\d+$")

    @property
    def total_price(self) -> float:
        return self.base_price + self.vanity_premium
