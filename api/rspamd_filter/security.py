import hmac
import os
from typing import Optional

from fastapi import HTTPException, Request

API_KEY = os.getenv("RSPAMD_FILTER_API_KEY") or os.getenv("API_KEY", "")


def _presented_key(request: Request) -> Optional[str]:
    key = request.headers.get("X-Api-Key")
    if key:
        return key
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return None


def assert_api_key(request: Request):
    key = _presented_key(request)
    if not API_KEY or not key or not hmac.compare_digest(key, API_KEY):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
