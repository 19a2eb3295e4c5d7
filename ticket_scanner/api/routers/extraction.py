from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel
from ..deps import get_session_store, get_vision_client
from ...core.config import settings
from ...core.errors import ArchiveError, BadRequestError
from ...models.ticket import (
    AnalyzeRequest,
    BatchExtractRequest,
    BatchExtractResult,
    ExportRequest,
    ExtractedTicket,
    ExtractRequest,
)
from ...services.analysis import analyze_images
from ...services.archive import extract_zip
from ...services.export import export_filename, tickets_to_csv
from ...services.extraction import extract_batch, extract_one
from ...services.files import is_supported, to_data_url
from ...services.storage.sessions import SessionStore
from ...services.vision import VisionClient

router = APIRouter(prefix="/api", tags=["extraction"])


class ExtractResponse(BaseModel):
    ticket: ExtractedTicket


class AnalyzeResponse(BaseModel):
    analysis: str


@router.post("/extract", response_model=ExtractResponse)
async def extract(
    req: ExtractRequest,
    store: SessionStore = Depends(get_session_store),
    client: VisionClient = Depends(get_vision_client),
):
    """
    Extract structured ticket fields from one image.

    `imageUrl` may be a stored-file URL (/uploads/...), a data URL or an
    external http(s) URL.
    """
    if not req.image_url:
        raise BadRequestError("No image URL provided")
    client.require_configured()

    ticket = await extract_one(
        store,
        client,
        req.image_url,
        session_id=req.session_id,
        threshold=settings.review_confidence_threshold,
    )
    return ExtractResponse(ticket=ticket)


@router.post("/extract-batch", response_model=BatchExtractResult)
async def extract_tickets(
    req: BatchExtractRequest,
    store: SessionStore = Depends(get_session_store),
    client: VisionClient = Depends(get_vision_client),
):
    """
    Extract several images one after another.

    Failures are reported per image in `errors`; they never abort the batch.
    """
    if not req.image_urls:
        raise BadRequestError("No image URLs provided")
    client.require_configured()

    result = await extract_batch(
        store,
        client,
        req.image_urls,
        session_id=req.session_id,
        threshold=settings.review_confidence_threshold,
    )
    logger.info(
        "Batch extraction finished",
        requested=len(req.image_urls),
        tickets=len(result.tickets),
        errors=len(result.errors),
    )
    return result


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    req: AnalyzeRequest,
    store: SessionStore = Depends(get_session_store),
    client: VisionClient = Depends(get_vision_client),
):
    """Free-form analysis of images, separate from structured extraction"""
    return AnalyzeResponse(analysis=await analyze_images(store, client, req.images, req.prompt))


@router.post("/extract-zip")
async def preview_zip(file: UploadFile | None = File(default=None)):
    """Unpack a ZIP without storing it; images and PDFs come back as data URLs"""
    if file is None:
        raise BadRequestError("No file uploaded")

    try:
        entries = extract_zip(await file.read())
    except ArchiveError as e:
        raise ArchiveError("Failed to extract ZIP file") from e

    return {
        "files": [
            {
                "name": entry.name,
                "mimeType": entry.mime_type,
                "dataUrl": to_data_url(entry.data, entry.mime_type) if is_supported(entry.mime_type) else None,
                "size": len(entry.data),
            }
            for entry in entries
        ]
    }


@router.post("/export")
async def export_tickets(req: ExportRequest):
    """Download reviewed tickets as CSV (all tickets, or approved ones only)"""
    csv_text = tickets_to_csv(req.tickets, approved_only=req.approved_only)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(req.approved_only)}"'},
    )
