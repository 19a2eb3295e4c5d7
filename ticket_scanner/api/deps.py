from ..core.config import settings
from ..services.storage.sessions import SessionStore
from ..services.vision import VisionClient


def get_session_store() -> SessionStore:
    return SessionStore(settings.upload_dir)


def get_vision_client() -> VisionClient:
    return VisionClient.from_settings(settings)
