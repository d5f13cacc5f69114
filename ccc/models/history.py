"""History record models for the append-only message log."""

import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Sender(str, Enum):
    """Who produced a history record."""

    HUMAN = "human"
    ASSISTANT = "assistant"
    API = "api"


class HistoryRecord(BaseModel):
    """One line of a conversation's JSONL history.

    Field names on disk are short (`ts`, `from`) to stay compatible with
    logs written by earlier versions.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., description="Process-wide monotonic message id")
    timestamp: int = Field(
        default_factory=lambda: int(time.time()),
        alias="ts",
        description="Unix timestamp (seconds)",
    )
    sender: Sender = Field(..., alias="from")
    text: str = ""
    media_kind: str | None = Field(
        default=None,
        alias="type",
        description="text, voice, photo or document",
    )
    media_path: str | None = Field(default=None, alias="path")
    agent: str | None = Field(
        default=None,
        description="Caller label for api messages",
    )

    @field_validator("sender", mode="before")
    @classmethod
    def _legacy_sender(cls, value):
        # Older logs recorded agent output as "claude"
        if value == "claude":
            return Sender.ASSISTANT
        return value

    def to_json_dict(self) -> dict:
        """Serialize with on-disk aliases, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
