from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field
from ..deps import get_session_store, get_vision_client
from ...core.config import settings
from ...core.errors import BadRequestError
from ...models.session import (
    ConvertedImagesRequest,
    OrientAllItem,
    OrientationResult,
    OrientRequest,
    SessionDetails,
    SessionSummary,
    StoredFile,
)
from ...services.orientation import orient_all, orient_one
from ...services.storage.sessions import SessionStore
from ...services.uploads import UploadedFile, handle_upload, save_converted
from ...services.vision import VisionClient

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


class CreateSessionResponse(BaseModel):
    session_id: str = Field(alias="sessionId")

    model_config = {"populate_by_name": True}


class SessionListResponse(BaseModel):
    sessions: list[SessionSummary]


class FilesResponse(BaseModel):
    files: list[StoredFile]


class OrientAllResponse(BaseModel):
    results: list[OrientAllItem]


@router.post("", response_model=CreateSessionResponse)
async def create_session(store: SessionStore = Depends(get_session_store)):
    return CreateSessionResponse(session_id=store.create())


@router.get("", response_model=SessionListResponse)
async def list_sessions(store: SessionStore = Depends(get_session_store)):
    """List sessions, most recently created first"""
    return SessionListResponse(sessions=store.list_sessions())


@router.get("/{session_id}", response_model=SessionDetails, response_model_exclude_none=True)
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    return store.get(session_id)


@router.delete("/{session_id}")
async def delete_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    store.delete(session_id)
    return {"success": True}


@router.post("/{session_id}/upload", response_model=FilesResponse, response_model_exclude_none=True)
async def upload_files(
    session_id: str,
    files: list[UploadFile] = File(default=[]),
    store: SessionStore = Depends(get_session_store),
):
    """
    Upload images, PDFs or ZIP archives into a session.

    ZIP archives are unpacked into the session's extracted/ folder.
    Unsupported files are ignored, so the response may list fewer files
    than were sent (or none at all).
    """
    store.require(session_id)

    if not files:
        raise BadRequestError("No files uploaded")
    if len(files) > settings.max_upload_files:
        raise BadRequestError(f"Too many files (maximum {settings.max_upload_files})")

    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    uploads = []
    for file in files:
        data = await file.read()
        if len(data) > max_bytes:
            raise BadRequestError(f"{file.filename} exceeds the {settings.max_upload_size_mb}MB limit")
        uploads.append(UploadedFile(filename=file.filename or "file", content_type=file.content_type, data=data))

    return FilesResponse(files=handle_upload(store, session_id, uploads))


@router.post("/{session_id}/converted", response_model=FilesResponse, response_model_exclude_none=True)
async def save_converted_images(
    session_id: str,
    req: ConvertedImagesRequest,
    store: SessionStore = Depends(get_session_store),
):
    """Store page images rendered client-side from PDFs ({name, dataUrl} items)"""
    store.require(session_id)
    if not req.images:
        raise BadRequestError("No images provided")
    return FilesResponse(files=save_converted(store, session_id, req.images))


@router.post("/{session_id}/orient", response_model=OrientationResult, response_model_exclude_none=True)
async def orient_image(
    session_id: str,
    req: OrientRequest,
    store: SessionStore = Depends(get_session_store),
    client: VisionClient = Depends(get_vision_client),
):
    store.require(session_id)
    if not req.image_url:
        raise BadRequestError("No image URL provided")
    client.require_configured()
    return await orient_one(store, client, session_id, req.image_url)


@router.post("/{session_id}/orient-all", response_model=OrientAllResponse, response_model_exclude_none=True)
async def orient_all_images(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    client: VisionClient = Depends(get_vision_client),
):
    store.require(session_id)
    client.require_configured()
    return OrientAllResponse(results=await orient_all(store, client, session_id))
