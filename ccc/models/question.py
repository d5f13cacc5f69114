"""Structured multiple-choice prompts raised by the agent."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class QuestionOption(BaseModel):
    """One selectable option of a pending question."""

    label: str
    description: str = ""


class PendingQuestion(BaseModel):
    """A question the agent is waiting on (AskUserQuestion tool)."""

    question: str
    header: str = ""
    multi_select: bool = Field(default=False, alias="multiSelect")
    options: list[QuestionOption] = Field(default_factory=list)
    received_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(populate_by_name=True)
