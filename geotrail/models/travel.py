from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TravelPoint(BaseModel):
    """A stop on a trip as the trip editor stores it. Only ``city`` is geocoded."""

    model_config = ConfigDict(populate_by_name=True)

    city: str
    date: str
    transport: List[str]
    custom_transport: Optional[str] = Field(default=None, alias="customTransport")
    notes: Optional[str] = None
