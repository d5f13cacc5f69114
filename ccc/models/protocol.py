"""Control socket request, response and event frames.

One JSON object per line in each direction. Responses always carry `ok`;
every other field is omitted when empty.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ccc.models.history import HistoryRecord


class ControlRequest(BaseModel):
    """A request frame read from the control socket."""

    cmd: str = ""
    session: str = ""
    text: str = ""
    sender: str = Field(default="", alias="from", description="Caller label")
    after: int = 0
    limit: int = 0
    from_filter: str = ""
    sessions: list[str] = Field(default_factory=list)
    question_index: int | None = None
    option_index: int | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SessionSummary(BaseModel):
    """One entry of the `sessions` response."""

    name: str
    host: str = Field(..., description="'local' or host name")
    status: str
    cwd: str = ""
    last_activity: int = Field(default=0, description="Unix time of last history write")


class ControlResponse(BaseModel):
    """A response frame written to the control socket."""

    ok: bool
    error: str | None = None
    sessions: list[SessionSummary] | None = None
    response: str | None = None
    message_id: int | None = None
    messages: list[HistoryRecord] | None = None
    duration_ms: int | None = None
    version: str | None = None
    uptime_seconds: int | None = None
    sessions_active: int | None = None
    questions: list[dict[str, Any]] | None = None

    @classmethod
    def failure(cls, error: str) -> "ControlResponse":
        return cls(ok=False, error=error)

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        data["ok"] = self.ok
        return data


class ControlEvent(BaseModel):
    """A streamed `subscribe` event."""

    event: str = Field(..., description="subscribed, status or message")
    session: str | None = None
    sender: str | None = Field(default=None, alias="from")
    text: str | None = None
    status: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
