import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from lms_email.api import create_app
from lms_email.config import load_settings
from lms_email.core import EmailService

# Configure logging level from environment
log_level = os.getenv("LMS_EMAIL_LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='[%(asctime)s] [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    force=True  # Force reconfiguration to avoid duplicate handlers
)


if __name__ == "__main__":
    settings = load_settings()
    service = EmailService(settings)

    # Define lifespan context manager for startup/shutdown events
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Shutdown: close pooled SMTP connections
        await service.close()

    app = create_app(service, lifespan=lifespan)

    uvicorn.run(app, host=settings.http_host, port=settings.http_port)
