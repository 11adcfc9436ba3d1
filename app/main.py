import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import configure_logging
from app.middleware import RequestLoggingMiddleware
from app.routers import businesses, locations

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.project_name,
    version="1.0.0",
    debug=settings.debug,
)

app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(businesses.router, prefix=settings.api_v1_prefix)
app.include_router(locations.router, prefix=settings.api_v1_prefix)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 with a readable message, like every other validation failure."""
    logger.info("validation_error path=%s errors=%s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request parameters", "errors": jsonable_encoder(exc.errors())},
    )


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Welcome to the Local Business Locations API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
