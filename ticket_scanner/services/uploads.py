from dataclasses import dataclass
from loguru import logger
from ..models.session import StoredFile
from .archive import ArchiveEntry, extract_zip
from .files import extension_for, is_supported, is_zip, mime_type, parse_data_url
from .storage.sessions import SessionStore


@dataclass
class UploadedFile:
    filename: str
    content_type: str | None
    data: bytes


def handle_upload(store: SessionStore, session_id: str, files: list[UploadedFile]) -> list[StoredFile]:
    """
    Store uploaded files in a session.

    ZIP archives are kept under originals/ and their images and PDFs are
    unpacked into extracted/. Plain images and PDFs go to originals/.
    Anything else is dropped without an error; an upload where nothing
    qualified simply returns an empty list.

    Every archive is unpacked before anything is written, so a corrupt
    archive fails the whole upload and leaves the session untouched.
    """
    store.require(session_id)

    accepted: list[tuple[UploadedFile, str, list[ArchiveEntry] | None]] = []
    for upload in files:
        filename = upload.filename or "file"
        if is_zip(filename, upload.content_type):
            accepted.append((upload, filename, extract_zip(upload.data)))
        elif is_supported(mime_type(filename)):
            accepted.append((upload, filename, None))
        else:
            logger.info(
                "Dropping unsupported upload",
                session_id=session_id,
                filename=filename,
                content_type=upload.content_type,
            )

    stored: list[StoredFile] = []
    for upload, filename, entries in accepted:
        stored.append(store.store_file(session_id, "originals", filename, upload.data))
        for entry in entries or []:
            if not is_supported(entry.mime_type):
                logger.debug("Dropping unsupported archive entry", archive=filename, entry=entry.name)
                continue
            stored.append(store.store_file(session_id, "extracted", entry.name, entry.data, source=filename))

    logger.info("Upload processed", session_id=session_id, received=len(files), stored=len(stored))
    return stored


def save_converted(store: SessionStore, session_id: str, images: list) -> list[StoredFile]:
    """
    Persist client-rendered page images given as `{name, dataUrl}` items.

    Malformed items are skipped; the rest of the batch is still stored.
    A name without a recognised extension gets the one implied by the
    data URL's MIME type.
    """
    store.require(session_id)
    stored: list[StoredFile] = []

    for index, item in enumerate(images):
        if not isinstance(item, dict):
            logger.warning("Skipping converted image that is not an object", session_id=session_id, index=index)
            continue
        name = item.get("name")
        decoded = parse_data_url(item.get("dataUrl"))
        if not isinstance(name, str) or not name or decoded is None:
            logger.warning("Skipping malformed converted image", session_id=session_id, index=index)
            continue
        mime, payload = decoded
        if not is_supported(mime_type(name)):
            name += extension_for(mime)
        stored.append(store.store_file(session_id, "converted", name, payload))

    return stored
