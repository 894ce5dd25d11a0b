# FILE: app/schemas/whatsapp.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class WhatsAppInbound(BaseModel):
    # "from" is a keyword, so it is read through the alias
    from_: str = Field(alias="from")
    text: str = ""

    model_config = {"populate_by_name": True}


class WhatsAppReply(BaseModel):
    to: str
    reply: str
    state: str
    delivered: Optional[bool] = None
