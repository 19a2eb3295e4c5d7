from loguru import logger
from ..core.errors import BadRequestError
from .extraction import resolve_model_image
from .storage.sessions import SessionStore
from .vision import VisionClient

DEFAULT_ANALYSIS_PROMPT = (
    "Analyze these scanned ticket documents. Extract all relevant information including dates, "
    "amounts, ticket numbers, descriptions, and any other important details. "
    "Format the output in a structured way."
)
NO_ANALYSIS = "No analysis available"


async def analyze_images(
    store: SessionStore,
    client: VisionClient,
    images: list[str] | None,
    prompt: str | None = None,
) -> str:
    """Free-form analysis of one or more images in a single model request."""
    if not images:
        raise BadRequestError("No images provided")
    client.require_configured()

    resolved = [resolve_model_image(store, image) for image in images]
    reply = await client.complete(prompt or DEFAULT_ANALYSIS_PROMPT, resolved, max_tokens=4096)

    logger.info("Analysis completed", images=len(resolved), chars=len(reply))
    return reply or NO_ANALYSIS
