"""
BDRIS verify service — Entry point.

FastAPI app exposing the two-step CAPTCHA flow:
    POST /captcha  -> {captcha, sessionId}
    POST /verify   -> {message: "success", data: {...}}

Run: bdris-verify   (or: uvicorn bdris.main:app --port 3000)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from bdris.client import BDRISClient, BDRISSessionError
from bdris.config import settings
from bdris.housekeeping import setup_scheduler
from bdris.result_parser import UnexpectedPageShapeError
from bdris.sessions import SessionLimitError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("bdris")

MSG_CAPTCHA_FAILED = "Failed to load CAPTCHA"
MSG_TOO_MANY_SESSIONS = "Too many active sessions. Please try again later."
MSG_INVALID_SESSION = "Invalid or expired session. Please request a new CAPTCHA."
MSG_VERIFY_FAILED = "Verification failed"
MSG_UNEXPECTED_PAGE = "Unexpected result page. Check the submitted details and CAPTCHA."
MSG_NOT_READY = "Server not ready"

_client: BDRISClient | None = None


# ---------------------------------------------------------------------------
# Lifespan: Playwright driver, session sweeper
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    global _client
    _client = BDRISClient()
    await _client.start()
    scheduler = setup_scheduler(_client)
    scheduler.start()
    logger.info("BDRIS verify service started (target=%s)", settings.base_url)
    try:
        yield
    finally:
        scheduler.shutdown()
        try:
            await _client.close()
        except Exception:
            logger.warning("Failed to close BDRIS client", exc_info=True)
        _client = None
        logger.info("BDRIS verify service stopped")


app = FastAPI(
    title="BDRIS Verify API",
    description="Birth registration lookup via the BDRIS e-verify form",
    version="1.0.0",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class VerifyRequest(BaseModel):
    """Form values are passed through verbatim; non-strings are stringified."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field("", alias="sessionId")
    birth_number: str = Field("", alias="birthNumber")
    birth_date: str = Field("", alias="birthDate")
    captcha_input: str = Field("", alias="captchaInput")

    @field_validator("session_id", "birth_number", "birth_date", "captcha_input", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        return "" if value is None else str(value)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    # A /verify body that is not a JSON object carries no usable session id.
    if request.url.path == "/verify":
        logger.info("Verify rejected: unreadable body")
        return _error(500, MSG_INVALID_SESSION)
    return await request_validation_exception_handler(request, exc)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.post("/captcha")
async def get_captcha():
    """Open the form in a new session and return its CAPTCHA image."""
    if not _client:
        return _error(500, MSG_NOT_READY)
    try:
        challenge = await _client.issue_captcha()
    except SessionLimitError as exc:
        logger.warning("CAPTCHA refused: %s", exc)
        return _error(503, MSG_TOO_MANY_SESSIONS)
    except Exception as exc:
        logger.error("Error loading CAPTCHA: %s", exc, exc_info=True)
        return _error(500, MSG_CAPTCHA_FAILED)
    return challenge.to_dict()


@app.post("/verify")
async def verify(req: VerifyRequest | None = Body(None)):
    """Submit the form for a session and return the parsed record."""
    if not _client:
        return _error(500, MSG_NOT_READY)
    if req is None:
        req = VerifyRequest()
    try:
        record = await _client.verify(
            req.session_id, req.birth_number, req.birth_date, req.captcha_input,
        )
    except BDRISSessionError as exc:
        logger.info("Verify rejected: %s", exc)
        return _error(500, MSG_INVALID_SESSION)
    except UnexpectedPageShapeError as exc:
        logger.warning("Verify failed: %s", exc)
        return _error(500, MSG_UNEXPECTED_PAGE)
    except Exception as exc:
        logger.error("Error during verification: %s", exc, exc_info=True)
        return _error(500, MSG_VERIFY_FAILED)
    return {"message": "success", "data": record.to_dict()}


@app.get("/health")
async def health() -> dict:
    return {
        "status": "ok",
        "activeSessions": len(_client.store) if _client else 0,
    }


def main() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
