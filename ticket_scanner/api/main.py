from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ..core.logging import setup_logging
from ..core.config import settings
from ..core.errors import TicketScannerError
from .routers import extraction, files, health, sessions

logger = setup_logging()
app = FastAPI(title="Ticket Scanner")


# Malformed bodies are client errors like any other missing field
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(TicketScannerError)
async def ticket_scanner_exception_handler(request: Request, exc: TicketScannerError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# Configure CORS to allow the review UI
# CORS_ORIGINS can be set in .env as comma-separated list
allowed_origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(sessions.router)
app.include_router(extraction.router)
app.include_router(files.router)
