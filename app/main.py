import logging
import os
import time
import uuid

from fastapi import FastAPI, Request
from api.route import files

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# boto3/botocoreのリクエスト毎のログを抑制
for _noisy in ("botocore", "boto3", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

app = FastAPI(title="Document Storage Service")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """リクエストIDの付与とアクセスログ出力"""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request_id
    logger.info(
        f"[{request_id}] {request.method} {request.url.path} "
        f"{response.status_code} {duration_ms:.1f}ms"
    )
    return response


app.include_router(files.router)
