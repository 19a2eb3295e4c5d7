from typing import Literal
from pydantic import BaseModel, Field

TICKET_FIELDS = (
    "ticketNumber",
    "date",
    "time",
    "materialType",
    "quantity",
    "unit",
    "truckId",
    "driverId",
    "driverName",
    "jobNumber",
    "projectName",
    "customerName",
    "vendorName",
    "plantLocation",
    "grossWeight",
    "tareWeight",
    "netWeight",
    "pricePerUnit",
    "totalPrice",
    "notes",
)

FIELD_LABELS = {
    "ticketNumber": "Ticket #",
    "date": "Date",
    "time": "Time",
    "materialType": "Material Type",
    "quantity": "Quantity",
    "unit": "Unit",
    "truckId": "Truck ID",
    "driverId": "Driver ID",
    "driverName": "Driver Name",
    "jobNumber": "Job #",
    "projectName": "Project Name",
    "customerName": "Customer",
    "vendorName": "Vendor",
    "plantLocation": "Plant Location",
    "grossWeight": "Gross Weight",
    "tareWeight": "Tare Weight",
    "netWeight": "Net Weight",
    "pricePerUnit": "Price/Unit",
    "totalPrice": "Total Price",
    "notes": "Notes",
}

TicketStatus = Literal["pending", "approved", "flagged"]


class ExtractedField(BaseModel):
    value: str = ""
    confidence: int = 0
    needs_review: bool = Field(default=False, alias="needsReview")

    model_config = {"populate_by_name": True}


class ExtractedTicket(BaseModel):
    id: str
    image_url: str = Field(alias="imageUrl")
    fields: dict[str, ExtractedField]
    overall_confidence: int = Field(alias="overallConfidence")
    status: TicketStatus
    extracted_at: str = Field(alias="extractedAt")

    model_config = {"populate_by_name": True}


class ExtractionFailure(BaseModel):
    image_url: str = Field(alias="imageUrl")
    error: str

    model_config = {"populate_by_name": True}


class BatchExtractResult(BaseModel):
    tickets: list[ExtractedTicket] = []
    errors: list[ExtractionFailure] = []


class ExtractRequest(BaseModel):
    image_url: str | None = Field(default=None, alias="imageUrl")
    session_id: str | None = Field(default=None, alias="sessionId")

    model_config = {"populate_by_name": True}


class BatchExtractRequest(BaseModel):
    image_urls: list[str] | None = Field(default=None, alias="imageUrls")
    session_id: str | None = Field(default=None, alias="sessionId")

    model_config = {"populate_by_name": True}


class AnalyzeRequest(BaseModel):
    images: list[str] | None = None
    prompt: str | None = None


class ExportRequest(BaseModel):
    tickets: list[ExtractedTicket] = []
    approved_only: bool = Field(default=False, alias="approvedOnly")

    model_config = {"populate_by_name": True}
