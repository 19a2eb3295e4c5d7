"""
Filesystem-backed session store.

Each session is a directory under the store root holding three collections:

    <root>/<session_id>/originals/   files uploaded as-is (including ZIP archives)
    <root>/<session_id>/extracted/   files unpacked from uploaded archives
    <root>/<session_id>/converted/   page images rendered by the client from PDFs

Files are addressed by logical URLs of the form
`/uploads/<session_id>/<subdir>/<name>`, which the API serves read-only.
"""

import os
import re
import secrets
import shutil
from datetime import datetime, UTC
from pathlib import Path
from urllib.parse import unquote, urlparse
from loguru import logger
from ...core.errors import BadRequestError, InternalError, NotFoundError
from ...models.session import (
    SessionDetails,
    SessionFileCounts,
    SessionFiles,
    SessionSummary,
    StoredFile,
)
from ..files import fit_filename, mime_type, sanitize_filename

SUBDIRS = ("originals", "extracted", "converted")
URL_PREFIX = "/uploads"

_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, UTC).isoformat()


class SessionStore:
    """
    Owns the on-disk layout of upload sessions.

    The store keeps no in-memory state; the directory tree is the only
    source of truth, so any number of instances may point at the same root.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    # ---------- sessions ----------

    def session_dir(self, session_id: str) -> Path:
        if not session_id or not _SESSION_ID.match(session_id):
            raise NotFoundError("Session not found")
        return self.root / session_id

    def exists(self, session_id: str) -> bool:
        try:
            return self.session_dir(session_id).is_dir()
        except NotFoundError:
            return False

    def require(self, session_id: str) -> Path:
        """Return the session directory or raise NotFoundError."""
        path = self.session_dir(session_id)
        if not path.is_dir():
            raise NotFoundError("Session not found")
        return path

    def create(self) -> str:
        """Create a session directory with its three collections and return its id."""
        session_id = f"{datetime.now(UTC).strftime('%Y-%m-%dT%H-%M-%S')}_{secrets.token_hex(4)}"
        try:
            for subdir in SUBDIRS:
                (self.root / session_id / subdir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InternalError(f"Failed to create session: {e}") from e

        logger.info("Session created", session_id=session_id)
        return session_id

    def list_sessions(self) -> list[SessionSummary]:
        """All sessions, most recently created first."""
        if not self.root.is_dir():
            return []

        sessions = []
        for entry in self.root.iterdir():
            if not entry.is_dir() or not _SESSION_ID.match(entry.name):
                continue
            stat = entry.stat()
            counts = {subdir: self._count_files(entry / subdir) for subdir in SUBDIRS}
            sessions.append(
                SessionSummary(
                    id=entry.name,
                    created=_iso(stat.st_ctime),
                    modified=_iso(stat.st_mtime),
                    files=SessionFileCounts(**counts),
                )
            )

        # Ids start with the creation timestamp, so they break ctime ties
        sessions.sort(key=lambda s: (s.created, s.id), reverse=True)
        return sessions

    def get(self, session_id: str) -> SessionDetails:
        self.require(session_id)
        files = {subdir: self.list_files(session_id, subdir) for subdir in SUBDIRS}
        return SessionDetails(id=session_id, files=SessionFiles(**files))

    def delete(self, session_id: str) -> None:
        path = self.require(session_id)
        try:
            shutil.rmtree(path)
        except FileNotFoundError as e:
            raise NotFoundError("Session not found") from e
        except OSError as e:
            raise InternalError(f"Failed to delete session: {e}") from e
        logger.info("Session deleted", session_id=session_id)

    # ---------- files ----------

    @staticmethod
    def _count_files(path: Path) -> int:
        if not path.is_dir():
            return 0
        return sum(1 for p in path.iterdir() if p.is_file())

    def url_for(self, session_id: str, subdir: str, name: str) -> str:
        return f"{URL_PREFIX}/{session_id}/{subdir}/{name}"

    def list_files(self, session_id: str, subdir: str) -> list[StoredFile]:
        folder = self.require(session_id) / subdir
        if not folder.is_dir():
            return []

        files = []
        for path in sorted(folder.iterdir(), key=lambda p: p.name):
            if not path.is_file():
                continue
            stat = path.stat()
            files.append(
                StoredFile(
                    name=path.name,
                    url=self.url_for(session_id, subdir, path.name),
                    size=stat.st_size,
                    mime_type=mime_type(path.name),
                    created=_iso(stat.st_ctime),
                )
            )
        return files

    def store_file(
        self,
        session_id: str,
        subdir: str,
        name: str,
        data: bytes,
        source: str | None = None,
    ) -> StoredFile:
        """
        Write bytes into a session collection under a sanitized, unique name.

        When the name is taken, `_1`, `_2`, ... is inserted before the
        extension. Files are opened in exclusive-create mode, so two writers
        can never end up sharing a name.
        """
        if subdir not in SUBDIRS:
            raise BadRequestError(f"Unknown folder: {subdir}")
        folder = self.require(session_id) / subdir

        safe_name = sanitize_filename(name)
        base, ext = os.path.splitext(safe_name)
        candidate = safe_name
        counter = 0
        try:
            folder.mkdir(parents=True, exist_ok=True)
            while True:
                try:
                    with open(folder / candidate, "xb") as f:
                        f.write(data)
                    break
                except FileExistsError:
                    counter += 1
                    candidate = fit_filename(base, ext, f"_{counter}")
        except OSError as e:
            raise InternalError(f"Failed to store file {safe_name}: {e}") from e

        logger.info(
            "Stored file",
            session_id=session_id,
            subdir=subdir,
            name=candidate,
            size=len(data),
        )
        return StoredFile(
            name=candidate,
            url=self.url_for(session_id, subdir, candidate),
            size=len(data),
            mime_type=mime_type(candidate),
            source=source,
            created=datetime.now(UTC).isoformat(),
        )

    def file_path(self, session_id: str, subdir: str, name: str) -> Path:
        """Path of an existing stored file; anything else is NotFoundError."""
        session_path = self.require(session_id)
        if subdir not in SUBDIRS or name != sanitize_filename(name):
            raise NotFoundError("File not found")
        path = session_path / subdir / name
        if not path.is_file():
            raise NotFoundError("File not found")
        return path

    @staticmethod
    def parse_url(url: str) -> tuple[str, str, str]:
        """Split a stored-file URL into (session_id, subdir, name)."""
        parts = unquote(urlparse(url or "").path).split("/")
        if len(parts) != 5 or parts[0] != "" or f"/{parts[1]}" != URL_PREFIX:
            raise BadRequestError(f"Not a stored file URL: {url}")
        _, _, session_id, subdir, name = parts
        if subdir not in SUBDIRS or not name:
            raise BadRequestError(f"Not a stored file URL: {url}")
        return session_id, subdir, name

    @staticmethod
    def is_stored_url(url: str) -> bool:
        try:
            SessionStore.parse_url(url)
        except BadRequestError:
            return False
        return True

    def resolve(self, session_id: str, url: str) -> tuple[str, str, Path]:
        """Resolve a URL that must belong to `session_id` to (subdir, name, path)."""
        url_session, subdir, name = self.parse_url(url)
        if url_session != session_id:
            raise BadRequestError("Image URL does not belong to this session")
        return subdir, name, self.file_path(session_id, subdir, name)

    def read_url(self, url: str) -> tuple[bytes, str]:
        """Read a stored file by URL, returning (bytes, mime type)."""
        session_id, subdir, name = self.parse_url(url)
        path = self.file_path(session_id, subdir, name)
        try:
            return path.read_bytes(), mime_type(name)
        except OSError as e:
            raise InternalError(f"Failed to read {name}: {e}") from e
