# topic_chat/server/models.py
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ChatMessage(BaseModel):
    """
    A single transcript entry. Messages are frozen once created; the proxy
    reads the client's transcript but never edits or reorders it.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    # Usually user, assistant or system; any other role renders as "User".
    role: str
    content: str
    timestamp: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("timestamp", "ts")
    )


class ChatRequest(BaseModel):
    """Body of ``POST /api/chat``. Required fields are checked by the handler."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    topic: Optional[str] = None
    history: List[ChatMessage] = Field(default_factory=list)
    user_input: Optional[str] = Field(default=None, alias="userInput")

    @field_validator("history", mode="before")
    def null_history_is_empty(cls, v):
        return [] if v is None else v


class SummarizeRequest(BaseModel):
    """Body of ``POST /api/summarize``."""

    model_config = ConfigDict(extra="ignore")

    topic: Optional[str] = None
    history: List[ChatMessage] = Field(default_factory=list)

    @field_validator("history", mode="before")
    def null_history_is_empty(cls, v):
        return [] if v is None else v


class CompletionRequest(BaseModel):
    """
    The prompt pieces for one completion, assembled fresh per call.

    ``user_input`` is None for summaries, which have no latest message to
    respond to.
    """

    model_config = ConfigDict(frozen=True)

    system_prompt: str
    conversation_text: str
    user_input: Optional[str] = None
