from contextlib import asynccontextmanager
import logging

import uvicorn
from fastapi import FastAPI, Request

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings, setup_logging
from app.services.scheduler_service import epg_scheduler

from app.routers import main_router


setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting HDHomeRun XMLTV Service...")

    try:
        settings.output_path.mkdir(parents=True, exist_ok=True)
        epg_scheduler.start()
        logger.info(f"Service started - EPG available at http://localhost:{settings.web_port}/epg.xml")
    except Exception as e:
        logger.error(f"Failed to start service: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down HDHomeRun XMLTV Service...")
    try:
        epg_scheduler.shutdown()
    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)

    logger.info("Service stopped")


app = FastAPI(
    title="HDHomeRun XMLTV Service",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(main_router)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors with details"""
    logger.error(f"Validation error for {request.method} {request.url.path}")
    logger.error(f"Validation details: {exc.errors()}")

    errors = []
    for error in exc.errors():
        error_dict = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": str(error.get("input", ""))[:100]
        }
        errors.append(error_dict)

    return JSONResponse(
        status_code=422,
        content={
            "detail": errors
        }
    )


def run() -> None:
    """Console entry point"""
    uvicorn.run(app, host="0.0.0.0", port=settings.web_port, log_config=None)


if __name__ == "__main__":
    run()
