from typing import Any, Optional

from pydantic import BaseModel, Field


class ChannelConnectionPayload(BaseModel):
    """
    Schema for creating (or re-activating) a channel connection.
    """

    channel: str = Field(..., description="Channel slug, e.g. airbnb, booking, expedia")
    is_active: bool = Field(True, description="Whether imports run for this channel")
    settings: Optional[dict[str, Any]] = Field(None, description="Per-property sync settings")


class ChannelTogglePayload(BaseModel):
    is_active: bool = Field(..., description="New active flag")


class ChannelMappingPayload(BaseModel):
    """
    Schema for mapping a room type to a channel calendar.

    The export token is generated by the server; rotate it by deleting and
    recreating the mapping.
    """

    channel: str = Field(..., description="Channel slug of an existing connection")
    room_type_id: str = Field(..., description="Room type the calendar represents")
    import_url: Optional[str] = Field(None, description="External iCal URL to import busy periods from")
