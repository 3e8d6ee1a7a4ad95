"""Pydantic models for mailbox listings."""

from typing import List, Optional

from pydantic import BaseModel, Field


class MessageSender(BaseModel):
    name: str
    address: str


class MessageSummary(BaseModel):
    """Flattened view of one Graph message."""

    id: Optional[str] = None
    subject: str = ""
    sender: MessageSender = Field(..., alias="from")
    received_at: Optional[str] = None
    is_read: bool = False
    has_attachments: bool = False
    body_preview: str = ""

    model_config = {"populate_by_name": True}


class MessageListResponse(BaseModel):
    """Messages returned by a folder listing."""

    folder: str
    count: int = Field(..., description="Exact number of messages returned.")
    messages: List[MessageSummary] = Field(default_factory=list)


__all__ = ["MessageListResponse", "MessageSender", "MessageSummary"]
