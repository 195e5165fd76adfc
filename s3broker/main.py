from __future__ import annotations

import uvicorn
from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from s3broker.api import broker
from s3broker.api.utils import register_exception_handlers
from s3broker.logging_config import configure_logging

configure_logging()

app = FastAPI(
    title="S3 Service Broker",
    description="Open Service Broker for Amazon S3 buckets and IAM credentials",
    version="0.1.0",
)


@app.get("/", include_in_schema=False)
def root() -> RedirectResponse:
    """Redirect root URL to Swagger UI docs."""
    return RedirectResponse(url="/docs")


app.include_router(broker.router)

register_exception_handlers(app)

if __name__ == "__main__":
    uvicorn.run("s3broker.main:app", host="0.0.0.0", port=8080, log_level="info")
