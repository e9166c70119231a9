# marketingvoice/schemas/model.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Provider(str, Enum):
    CLAUDE = "claude"
    CHATGPT = "chatgpt"
    OLLAMA = "ollama"


class ModelSpec(BaseModel):
    provider: Provider
    model: str
    temperature: Optional[float] = Field(None, ge=0, le=2)
    max_tokens: int = 4096

    @classmethod
    def parse(cls, value: str) -> "ModelSpec":
        """Parse a "provider:model" string such as "chatgpt:gpt-4o-mini"."""
        provider, sep, model = value.partition(":")
        if not sep or not model:
            raise ValueError(f"Invalid model spec: {value!r}, expected 'provider:model'")
        return cls(provider=Provider(provider), model=model)
