from typing import Any
from pydantic import BaseModel, Field


class StoredFile(BaseModel):
    name: str
    url: str
    size: int
    mime_type: str = Field(alias="mimeType")
    source: str | None = None  # Archive the file was extracted from
    created: str | None = None

    model_config = {"populate_by_name": True}


class SessionFileCounts(BaseModel):
    originals: int = 0
    extracted: int = 0
    converted: int = 0


class SessionSummary(BaseModel):
    id: str
    created: str
    modified: str
    files: SessionFileCounts


class SessionFiles(BaseModel):
    originals: list[StoredFile] = []
    extracted: list[StoredFile] = []
    converted: list[StoredFile] = []


class SessionDetails(BaseModel):
    id: str
    files: SessionFiles


class OrientationResult(BaseModel):
    rotated: int
    url: str
    original_url: str | None = Field(default=None, alias="originalUrl")

    model_config = {"populate_by_name": True}


class OrientAllItem(BaseModel):
    url: str
    rotated: int
    new_url: str | None = Field(default=None, alias="newUrl")
    error: str | None = None

    model_config = {"populate_by_name": True}


class ConvertedImagesRequest(BaseModel):
    """Body of /sessions/{id}/converted; entries are validated one by one."""
    images: list[Any] | None = None


class OrientRequest(BaseModel):
    image_url: str | None = Field(default=None, alias="imageUrl")

    model_config = {"populate_by_name": True}
