"""
Structured field extraction from material ticket images.

The model is asked for one JSON object mapping every ticket field to
`{"value": ..., "confidence": 0-100}`. Fields the model leaves out are
filled with empty values; confidences below the review threshold mark a
field for human review, and a low overall confidence flags the ticket.
"""

import json
import math
import uuid
from datetime import datetime, UTC
from loguru import logger
from ..core.errors import BadRequestError, ExternalServiceError, TicketScannerError
from ..models.ticket import (
    TICKET_FIELDS,
    BatchExtractResult,
    ExtractedField,
    ExtractedTicket,
    ExtractionFailure,
)
from .files import is_image, parse_data_url, to_data_url
from .storage.sessions import SessionStore
from .vision import VisionClient

DEFAULT_REVIEW_THRESHOLD = 80

FIELD_DESCRIPTIONS = {
    "ticketNumber": "ticket, receipt or load number",
    "date": "date of the ticket",
    "time": "time of the ticket",
    "materialType": "material delivered (e.g. gravel, asphalt, concrete)",
    "quantity": "quantity of material",
    "unit": "unit of the quantity (tons, yards, loads, ...)",
    "truckId": "truck or vehicle number",
    "driverId": "driver number",
    "driverName": "driver name",
    "jobNumber": "job number",
    "projectName": "project name",
    "customerName": "customer name",
    "vendorName": "vendor or supplier name",
    "plantLocation": "plant, pit or quarry location",
    "grossWeight": "gross weight",
    "tareWeight": "tare weight",
    "netWeight": "net weight",
    "pricePerUnit": "price per unit",
    "totalPrice": "total price",
    "notes": "any other notes or remarks",
}

EXTRACTION_PROMPT = (
    "You are reading a scanned material delivery ticket (weighbridge / scale ticket).\n"
    "Extract the following fields:\n"
    + "\n".join(f"- {field}: {FIELD_DESCRIPTIONS[field]}" for field in TICKET_FIELDS)
    + "\n\nRespond with a single JSON object and nothing else. Use every field name above as a key "
    'and map it to {"value": "<text as printed on the ticket>", "confidence": <0-100>}. '
    "Confidence is how sure you are that the value was read correctly. "
    'If a field is not present on the ticket use {"value": "", "confidence": 0}.'
)


def parse_model_json(text: str) -> dict:
    """Decode the first top-level JSON object in the model's reply."""
    start = (text or "").find("{")
    if start == -1:
        raise ExternalServiceError("Failed to parse extraction response: no JSON object found")
    try:
        data, _ = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError as e:
        raise ExternalServiceError(f"Failed to parse extraction response: {e}") from e
    if not isinstance(data, dict):
        raise ExternalServiceError("Failed to parse extraction response: not a JSON object")
    return data


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _normalize_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _normalize_confidence(value) -> int:
    if isinstance(value, bool):
        return 0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(confidence):
        return 0
    return _round_half_up(min(100.0, max(0.0, confidence)))


def build_field(raw, threshold: int = DEFAULT_REVIEW_THRESHOLD) -> ExtractedField:
    if isinstance(raw, dict):
        value, confidence = raw.get("value"), _normalize_confidence(raw.get("confidence"))
    else:
        # Bare value without a confidence score
        value, confidence = raw, 0
    return ExtractedField(
        value=_normalize_value(value),
        confidence=confidence,
        needs_review=0 < confidence < threshold,
    )


def overall_confidence(fields: dict[str, ExtractedField]) -> int:
    scored = [f.confidence for f in fields.values() if f.confidence > 0]
    if not scored:
        return 0
    return _round_half_up(sum(scored) / len(scored))


def build_ticket(data: dict, image_url: str, threshold: int = DEFAULT_REVIEW_THRESHOLD) -> ExtractedTicket:
    """Turn the model's JSON object into a ticket covering every known field."""
    source = data.get("fields") if isinstance(data.get("fields"), dict) else data
    fields = {name: build_field(source.get(name), threshold) for name in TICKET_FIELDS}
    overall = overall_confidence(fields)
    return ExtractedTicket(
        id=str(uuid.uuid4()),
        image_url=image_url,
        fields=fields,
        overall_confidence=overall,
        status="flagged" if overall < threshold else "pending",
        extracted_at=datetime.now(UTC).isoformat(),
    )


def resolve_model_image(store: SessionStore, image_url: str, session_id: str | None = None) -> str:
    """
    Turn an image reference into something the model can fetch.

    Stored-file URLs are read from the session store and inlined as data
    URLs; data URLs and external http(s) URLs are passed through.
    """
    if not image_url:
        raise BadRequestError("No image URL provided")

    if image_url.startswith("data:"):
        decoded = parse_data_url(image_url)
        if decoded is None:
            raise BadRequestError("Malformed data URL")
        return image_url

    if store.is_stored_url(image_url):
        if session_id:
            store.resolve(session_id, image_url)
        data, mime = store.read_url(image_url)
        if not is_image(mime):
            raise BadRequestError("Only images can be sent to the model; convert PDFs to page images first")
        return to_data_url(data, mime)

    if image_url.startswith(("http://", "https://")):
        return image_url

    raise BadRequestError(f"Unsupported image URL: {image_url[:100]}")


async def extract_one(
    store: SessionStore,
    client: VisionClient,
    image_url: str,
    session_id: str | None = None,
    threshold: int = DEFAULT_REVIEW_THRESHOLD,
) -> ExtractedTicket:
    client.require_configured()
    image = resolve_model_image(store, image_url, session_id)

    reply = await client.complete(EXTRACTION_PROMPT, [image], max_tokens=4096)
    ticket = build_ticket(parse_model_json(reply), image_url, threshold)

    logger.info(
        "Extracted ticket",
        ticket_id=ticket.id,
        overall_confidence=ticket.overall_confidence,
        status=ticket.status,
    )
    return ticket


async def extract_batch(
    store: SessionStore,
    client: VisionClient,
    image_urls: list[str],
    session_id: str | None = None,
    threshold: int = DEFAULT_REVIEW_THRESHOLD,
) -> BatchExtractResult:
    """Extract every image in order; one image failing does not stop the rest."""
    client.require_configured()
    result = BatchExtractResult()

    for image_url in image_urls:
        try:
            result.tickets.append(await extract_one(store, client, image_url, session_id, threshold))
        except TicketScannerError as e:
            logger.warning("Ticket extraction failed", image_url=image_url[:200], error=e.message)
            result.errors.append(ExtractionFailure(image_url=image_url, error=e.message))

    return result
