import os
import sys
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
import uvicorn

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

# Set up logging first
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from setup_logging_optimized import setup_logging, get_logger

setup_logging()
load_dotenv(override=True)

ENVIRONMENT = (
    os.getenv("ENVIRONMENT")
    or os.getenv("ENV")
    or "development"
).lower()

if os.getenv("SENTRY_DSN"):
    sentry_sdk.init(
        dsn=os.getenv("SENTRY_DSN"),
        integrations=[
            FastApiIntegration(transaction_style='endpoint'),
            LoggingIntegration(
                level=logging.INFO,        # Capture info and above as breadcrumbs
                event_level=logging.ERROR  # Send errors as events
            ),
        ],
        traces_sample_rate=0.1,
        environment=ENVIRONMENT,
        send_default_pii=False,
    )

from api.requests.api_template_pages import router as template_pages_router

logger = get_logger(__name__)

app = FastAPI(title="Page Templates API")

# The design plugin runs inside the host app's iframe, so origins are not fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in os.getenv("TEMPLATE_CORS_ORIGINS", "*").split(",")],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(template_pages_router)


@app.get("/")
def read_root():
    return {"message": "Page Templates API is running", "environment": ENVIRONMENT}


if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "9090"))

    logger.info(f"Starting Page Templates API on {host}:{port}")
    uvicorn.run("api.template_server:app", host=host, port=port, reload=ENVIRONMENT != "production", workers=1)
