from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field


ACCEPT_SYNONYMS: Tuple[Tuple[str, str], ...] = (
    ("accept", "Accept"),
    ("acknowledge", "Acknowledge"),
    ("acknowledged", "Acknowledge"),
)

# Highest priority first: the first one present names the decline badge phrase.
DECLINE_SYNONYMS: Tuple[Tuple[str, str], ...] = (
    ("decline", "Decline"),
    ("declined", "Decline"),
    ("reject", "Reject"),
    ("escalate", "Escalate"),
)

CALL_BACK_TOKENS = ("call back", "callback")


class ResponseGrammar(BaseModel):
    tokens: List[str] = Field(default_factory=list)
    accept_phrase: Optional[str] = None
    decline_phrase: Optional[str] = None
    call_back: bool = False

    @property
    def response_type(self) -> str:
        if self.accept_phrase or self.decline_phrase:
            return "Accept/Decline"
        return "None"

    model_config = {"extra": "forbid"}


def tokenize(text: str) -> List[str]:
    return [t.strip().lower() for t in (text or "").split(",") if t.strip()]


def parse_response_options(text: str) -> ResponseGrammar:
    tokens = tokenize(text)
    accept = next((phrase for word, phrase in ACCEPT_SYNONYMS if word in tokens), None)
    decline = next((phrase for word, phrase in DECLINE_SYNONYMS if word in tokens), None)
    call_back = any(t in CALL_BACK_TOKENS for t in tokens)
    return ResponseGrammar(tokens=tokens, accept_phrase=accept, decline_phrase=decline, call_back=call_back)
