import io
import zipfile
from dataclasses import dataclass
from loguru import logger
from ..core.errors import ArchiveError
from .files import mime_type

MACOS_METADATA_MARKER = "__MACOSX"


@dataclass
class ArchiveEntry:
    name: str
    data: bytes
    mime_type: str


def _is_hidden(entry_name: str) -> bool:
    basename = entry_name.rstrip("/").rsplit("/", 1)[-1]
    return (
        entry_name.startswith(".")
        or basename.startswith(".")
        or MACOS_METADATA_MARKER in entry_name
    )


def extract_zip(zip_bytes: bytes) -> list[ArchiveEntry]:
    """
    Unpack every regular file of a ZIP archive, in archive order.

    Directories, hidden files and macOS resource-fork metadata are skipped.
    A corrupt archive raises ArchiveError and yields no partial results.
    """
    entries: list[ArchiveEntry] = []
    try:
        with zipfile.ZipFile(io.BytesIO(zip_bytes)) as archive:
            for info in archive.infolist():
                if info.is_dir() or _is_hidden(info.filename):
                    continue
                entries.append(
                    ArchiveEntry(
                        name=info.filename,
                        data=archive.read(info),
                        mime_type=mime_type(info.filename),
                    )
                )
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, OSError, RuntimeError, ValueError) as e:
        # RuntimeError covers encrypted entries
        logger.error(f"ZIP extraction failed: {e}")
        raise ArchiveError(f"Failed to extract ZIP file: {e}") from e

    logger.debug("Extracted ZIP archive", entries=len(entries))
    return entries
