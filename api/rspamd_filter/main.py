import os
import time
import asyncio
import logging
from fastapi import FastAPI, Request

from .config import load_config
from .models import CheckRequest, CheckResult
from .security import assert_api_key
from .rspamd_client import check_message

LOG_LEVEL = os.getenv("LOG_LEVEL", "info")
MAX_CONCURRENCY = int(os.getenv("MAX_CONCURRENCY", "4"))

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

semaphore = asyncio.Semaphore(MAX_CONCURRENCY)
config = load_config()

api = FastAPI(title="rspamd filter API", version="1.0.0")


@api.get("/health")
async def health():
    return {"status": "ok", "rspamd": f"{config.main.host}:{config.main.port}"}


@api.post("/check", response_model=CheckResult)
async def check(request: Request, payload: CheckRequest):
    assert_api_key(request)

    start = time.time()
    # requests beyond MAX_CONCURRENCY wait here
    async with semaphore:
        outcome = await asyncio.to_thread(
            check_message, payload.connection, payload.raw_mime, config
        )

    verdict = outcome.verdict
    processingMs = int((time.time() - start) * 1000)
    logger.info("check: decision=%s in %sms", outcome.decision.value, processingMs)

    return CheckResult(
        decision=outcome.decision.value,
        smtpMessage=outcome.smtp_message,
        checked=outcome.checked,
        score=verdict.score if verdict else None,
        action=verdict.action if verdict else None,
        isSpam=verdict.is_spam if verdict else False,
        headers=outcome.headers,
        removeHeaders=outcome.removed_headers,
        processingMs=processingMs,
    )
