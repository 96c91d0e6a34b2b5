"""Document upload, library and dashboard routes."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from app.api.deps import get_documents, get_pipeline
from app.models.document import CATEGORY_CATALOG, CategoryInfo, DashboardStats, Document, DocumentResponse
from core.analysis import AnalysisPipeline, UploadedFile
from core.errors import DocumentProcessingError, DocumentValidationError
from core.library import dashboard_stats, filter_documents
from core.stores import DocumentStore

logger = logging.getLogger("simplidoc.api.documents")

router = APIRouter()


def to_response(document: Document) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        title=document.title,
        category=document.category,
        language=document.language,
        processing_status=document.processing_status,
        simplified_summary=document.simplified_summary,
        created_date=document.created_date,
    )


@router.post("/upload", response_model=DocumentResponse)
async def upload_document(
    file: UploadFile | None = File(None),
    category: str | None = Form(None),
    language: str = Form("english"),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> DocumentResponse:
    """Upload a PDF or image and produce its simplified summary."""
    upload = None
    if file is not None:
        upload = UploadedFile(
            filename=file.filename or "",
            content_type=file.content_type or "",
            content=await file.read(),
        )

    try:
        document = await pipeline.process_document(upload, category, language)
    except DocumentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DocumentProcessingError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return to_response(document)


@router.get("/", response_model=list[DocumentResponse])
async def list_documents(
    q: str | None = None,
    category: str | None = None,
    status: str | None = None,
    limit: int | None = None,
    documents: DocumentStore = Depends(get_documents),
) -> list[DocumentResponse]:
    """List documents, newest first, with library search and filters."""
    docs = filter_documents(await documents.list("-created_date"), q, category, status)
    if limit is not None:
        docs = docs[:limit]
    return [to_response(doc) for doc in docs]


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    limit: int | None = None,
    documents: DocumentStore = Depends(get_documents),
) -> DashboardStats:
    """Dashboard counts over the newest ``limit`` documents (all when omitted)."""
    return dashboard_stats(await documents.list("-created_date", limit))


@router.get("/categories", response_model=list[CategoryInfo])
async def list_categories() -> list[CategoryInfo]:
    """Categories offered on the upload form."""
    return CATEGORY_CATALOG


@router.get("/{document_id}", response_model=Document)
async def get_document(
    document_id: UUID,
    documents: DocumentStore = Depends(get_documents),
) -> Document:
    """Get the full document, including extracted text and analysis fields."""
    document = await documents.get(document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return document
