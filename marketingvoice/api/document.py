# marketingvoice/api/document.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_current_user, get_document_service
from ..schemas.auth import AuthUser
from ..schemas.document import Document, Suggestion
from ..services.documents import DocumentService
from ..utils.errors import BadRequestError, ForbiddenError, NotFoundError

router = APIRouter()


@router.get("/document")
async def get_document_versions(
        document_id: Optional[str] = Query(None, alias="id"),
        user: AuthUser = Depends(get_current_user),
        documents: DocumentService = Depends(get_document_service)
) -> list[Document]:
    if not document_id:
        raise BadRequestError("Missing id")

    versions = await documents.get_documents_by_id(document_id)
    if not versions:
        raise NotFoundError("Document not found")
    if versions[0].user_id != user.id:
        raise ForbiddenError()
    return versions


@router.get("/suggestions")
async def get_suggestions(
        document_id: Optional[str] = Query(None, alias="documentId"),
        user: AuthUser = Depends(get_current_user),
        documents: DocumentService = Depends(get_document_service)
) -> list[Suggestion]:
    if not document_id:
        raise BadRequestError("Missing documentId")

    suggestions = await documents.get_suggestions_by_document_id(document_id)
    if suggestions and suggestions[0].user_id != user.id:
        raise ForbiddenError()
    return suggestions
