# marketingvoice/services/documents.py
import logging
from typing import Optional

from sqlalchemy.sql import select

from ..db.models import DocumentModel, SuggestionModel
from ..db.session import AsyncSession
from ..schemas.document import Document, DocumentKind, Suggestion

logger = logging.getLogger(__name__)


def to_document(document: DocumentModel) -> Document:
    return Document(
        id=document.id,
        created_at=document.created_at,
        title=document.title,
        content=document.content,
        kind=document.kind,
        user_id=document.user_id
    )


def to_suggestion(suggestion: SuggestionModel) -> Suggestion:
    return Suggestion(
        id=suggestion.id,
        document_id=suggestion.document_id,
        document_created_at=suggestion.document_created_at,
        original_text=suggestion.original_text,
        suggested_text=suggestion.suggested_text,
        description=suggestion.description,
        is_resolved=suggestion.is_resolved,
        user_id=suggestion.user_id,
        created_at=suggestion.created_at
    )


class DocumentService:
    """Versioned documents produced by the artifact tools."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_document(
            self,
            document_id: str,
            title: str,
            kind: DocumentKind,
            content: Optional[str],
            user_id: str
    ) -> Document:
        document = DocumentModel(id=document_id, title=title, kind=kind, content=content, user_id=user_id)
        self.db.add(document)
        await self.db.commit()
        logger.info(f"Saved version of document {document_id}")
        return to_document(document)

    async def get_documents_by_id(self, document_id: str) -> list[Document]:
        """All versions of a document, oldest first."""
        result = await self.db.execute(
            select(DocumentModel)
            .filter(DocumentModel.id == document_id)
            .order_by(DocumentModel.created_at.asc())
        )
        return [to_document(document) for document in result.scalars().all()]

    async def get_document_by_id(self, document_id: str) -> Optional[Document]:
        result = await self.db.execute(
            select(DocumentModel)
            .filter(DocumentModel.id == document_id)
            .order_by(DocumentModel.created_at.desc())
            .limit(1)
        )
        document = result.scalar_one_or_none()
        return to_document(document) if document else None

    async def save_suggestions(self, suggestions: list[Suggestion]) -> None:
        for suggestion in suggestions:
            self.db.add(SuggestionModel(
                id=suggestion.id,
                document_id=suggestion.document_id,
                document_created_at=suggestion.document_created_at,
                original_text=suggestion.original_text,
                suggested_text=suggestion.suggested_text,
                description=suggestion.description,
                is_resolved=suggestion.is_resolved,
                user_id=suggestion.user_id
            ))
        await self.db.commit()

    async def get_suggestions_by_document_id(self, document_id: str) -> list[Suggestion]:
        result = await self.db.execute(
            select(SuggestionModel)
            .filter(SuggestionModel.document_id == document_id)
            .order_by(SuggestionModel.created_at.asc())
        )
        return [to_suggestion(suggestion) for suggestion in result.scalars().all()]
