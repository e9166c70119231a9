# marketingvoice/schemas/document.py
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .base import CamelModel

DocumentKind = Literal["text", "code", "sheet"]


class Document(CamelModel):
    id: str
    created_at: datetime
    title: str
    content: Optional[str] = None
    kind: DocumentKind
    user_id: str


class Suggestion(CamelModel):
    id: str
    document_id: str
    document_created_at: datetime
    original_text: str
    suggested_text: str
    description: Optional[str] = None
    is_resolved: bool = False
    user_id: str
    created_at: Optional[datetime] = None


class SuggestionDraft(BaseModel):
    """One suggestion as produced by the model"""
    original_sentence: str = Field(description="The original sentence")
    suggested_sentence: str = Field(description="The suggested sentence")
    description: str = Field(description="The description of the suggestion")


class SuggestionDrafts(BaseModel):
    suggestions: list[SuggestionDraft] = Field(description="At most five suggestions")
