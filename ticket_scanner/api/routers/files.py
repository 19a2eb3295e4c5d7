from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from ..deps import get_session_store
from ...services.files import mime_type
from ...services.storage.sessions import SessionStore

router = APIRouter(prefix="/uploads", tags=["files"])


@router.get("/{session_id}/{subdir}/{filename}")
async def serve_file(
    session_id: str,
    subdir: str,
    filename: str,
    store: SessionStore = Depends(get_session_store),
):
    """Serve a stored file read-only"""
    path = store.file_path(session_id, subdir, filename)
    return FileResponse(path, media_type=mime_type(filename))
