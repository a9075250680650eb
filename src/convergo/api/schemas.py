"""Request and response bodies shared by the API routes."""

from datetime import datetime

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python; either is accepted on input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class Envelope(ApiModel):
    ok: bool = True
    request_id: str


class MessageResponse(ApiModel):
    id: str
    role: str
    content: str
    session_id: str | None
    created_at: datetime
