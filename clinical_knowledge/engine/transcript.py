"""Shaping conversation messages into oracle transcripts."""

from typing import Any, List, Sequence

from pydantic import AliasChoices, BaseModel, Field, field_validator


class ConversationMessage(BaseModel):
    """One conversation turn; `role` also accepts the `type` field name."""

    role: str = Field(..., validation_alias=AliasChoices("role", "type"))
    content: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("content", mode="before")
    @classmethod
    def text_content(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @property
    def from_user(self) -> bool:
        return self.role in ("user", "patient")


def user_transcript(messages: Sequence[ConversationMessage]) -> str:
    """User turns only, joined by spaces."""
    return " ".join(m.content.strip() for m in messages if m.from_user and m.content.strip())


def dialogue_transcript(messages: Sequence[ConversationMessage]) -> str:
    """One `Patient:` or `Assistant:` line per non-empty turn."""
    lines: List[str] = []
    for m in messages:
        if not m.content.strip():
            continue
        speaker = "Patient" if m.from_user else "Assistant"
        lines.append(f"{speaker}: {m.content.strip()}")
    return "\n".join(lines)
