from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr

# strict: JSON true/false must not become epoch 1/0
TimeInput = Union[StrictStr, StrictInt, StrictFloat]


class Schedule(BaseModel):
    id: str
    title: str
    body: str
    topic: str
    image: Optional[str] = None
    time: str  # canonical UTC ISO
    sent: bool = False


class HistoryEntry(BaseModel):
    id: str
    title: str
    body: str
    topic: str
    image: Optional[str] = None
    time_utc: str
    time_local: str
    type: Literal["scheduled", "sent"]
    message_id: Optional[str] = None


class ScheduleRequest(BaseModel):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    topic: Optional[str] = None
    time: TimeInput
    image: Optional[str] = None


class ScheduleBulkRequest(BaseModel):
    items: List[ScheduleRequest] = Field(default_factory=list)


class SendNowRequest(BaseModel):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    topic: Optional[str] = None
    image: Optional[str] = None
