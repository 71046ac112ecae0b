"""
BDRIS birth-registration verification client.

Drives everify.bdris.gov.bd in a headless browser, in two steps that
share one open page:

1. issue_captcha(): open the form, screenshot the CAPTCHA image, park the
   page in the session store and hand back its id.
2. verify(): claim that page, fill in the registration number, date of
   birth and CAPTCHA answer, submit, parse the result table.

DESIGN PRINCIPLES:
1. One Chromium process per session, closed as soon as the session is
   redeemed or its issuance fails.
2. Sessions are single-use. verify() pops the session before touching
   the page, so a second call with the same id is always rejected.
3. Only the initial form load is retried (fixed attempts, no backoff).
4. Form values are typed verbatim; nothing is validated client-side.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

from bdris.browser import BrowserHandle, BrowserLauncher, load_with_retry
from bdris.config import settings
from bdris.result_parser import BirthRecord, UnexpectedPageShapeError, parse_result_page
from bdris.sessions import SessionStore

logger = logging.getLogger(__name__)

CAPTCHA_IMAGE_SELECTOR = "img#CaptchaImage"
BIRTH_NUMBER_FIELD = "#ubrn"
BIRTH_DATE_FIELD = "#BirthDate"
CAPTCHA_INPUT_FIELD = "#CaptchaInputText"

_SUBMIT_FORM_JS = "() => document.querySelector('form').submit()"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class BDRISError(Exception):
    """Base exception for BDRIS client errors."""


class BDRISSiteUnavailableError(BDRISError):
    """Browser launch, page load or CAPTCHA lookup failed."""


class BDRISSessionError(BDRISError):
    """Session id is unknown, expired or already redeemed."""


class BDRISVerificationError(BDRISError):
    """Filling in or submitting the form failed."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class CaptchaChallenge:
    """A CAPTCHA image (base64 PNG) and the session that can redeem it."""
    captcha: str
    session_id: str

    def to_dict(self) -> dict:
        return {"captcha": self.captcha, "sessionId": self.session_id}


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class BDRISClient:
    """Async client for the BDRIS birth-registration e-verify form."""

    def __init__(
        self,
        launcher: BrowserLauncher | None = None,
        store: SessionStore | None = None,
        base_url: str | None = None,
        page_load_max_attempts: int | None = None,
        page_load_timeout_ms: int | None = None,
        captcha_wait_timeout_ms: int | None = None,
        form_wait_timeout_ms: int | None = None,
        result_navigation_timeout_ms: int | None = None,
    ):
        self._launcher = launcher or BrowserLauncher()
        self._store = store if store is not None else SessionStore(settings.max_sessions)
        self._base_url = base_url or settings.base_url
        self._page_load_max_attempts = (
            settings.page_load_max_attempts if page_load_max_attempts is None
            else page_load_max_attempts
        )
        self._page_load_timeout_ms = (
            settings.page_load_timeout_ms if page_load_timeout_ms is None
            else page_load_timeout_ms
        )
        self._captcha_wait_timeout_ms = (
            settings.captcha_wait_timeout_ms if captcha_wait_timeout_ms is None
            else captcha_wait_timeout_ms
        )
        self._form_wait_timeout_ms = (
            settings.form_wait_timeout_ms if form_wait_timeout_ms is None
            else form_wait_timeout_ms
        )
        self._result_navigation_timeout_ms = (
            settings.result_navigation_timeout_ms if result_navigation_timeout_ms is None
            else result_navigation_timeout_ms
        )

    @property
    def store(self) -> SessionStore:
        return self._store

    async def start(self) -> None:
        await self._launcher.start()

    # ------------------------------------------------------------------
    # CAPTCHA issuance
    # ------------------------------------------------------------------

    async def issue_captcha(self) -> CaptchaChallenge:
        """
        Open the form in a new browser and capture its CAPTCHA.

        Returns the base64 PNG and the id of the session now holding the
        page. On any failure the browser is closed and no session exists.

        Raises SessionLimitError if the session cap is reached and
        BDRISSiteUnavailableError for browser or page failures.
        """
        with self._store.reserve():
            try:
                handle = await self._launcher.launch()
            except Exception as e:
                raise BDRISSiteUnavailableError(f"Browser launch failed: {e}") from e

            # The handle is not in the store yet, so nothing else can close it.
            try:
                image_bytes = await self._capture_captcha(handle)
            except BaseException as e:
                await handle.close()
                if isinstance(e, BDRISError) or not isinstance(e, Exception):
                    raise
                raise BDRISSiteUnavailableError(f"Failed to load CAPTCHA: {e}") from e

            session_id = self._store.create(handle)

        logger.info("CAPTCHA issued for session %s (%d bytes)", session_id, len(image_bytes))
        return CaptchaChallenge(
            captcha=base64.b64encode(image_bytes).decode("ascii"),
            session_id=session_id,
        )

    async def _capture_captcha(self, handle: BrowserHandle) -> bytes:
        page = handle.page
        await load_with_retry(
            page,
            self._base_url,
            max_attempts=self._page_load_max_attempts,
            timeout_ms=self._page_load_timeout_ms,
        )
        element = await page.wait_for_selector(
            CAPTCHA_IMAGE_SELECTOR, timeout=self._captcha_wait_timeout_ms,
        )
        if element is None:
            raise BDRISSiteUnavailableError("CAPTCHA image not found on page")
        return await element.screenshot(type="png")

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify(
        self,
        session_id: str,
        birth_number: str,
        birth_date: str,
        captcha_input: str,
    ) -> BirthRecord:
        """
        Redeem a session: submit the form on its page and parse the result.

        The session is removed and its browser closed whatever happens.

        Raises BDRISSessionError for an unknown id (no browser work is
        done), UnexpectedPageShapeError when the result page is not a
        success page, BDRISVerificationError for browser failures.
        """
        session = self._store.claim(session_id) if session_id else None
        if session is None or session.handle is None:
            raise BDRISSessionError(f"Unknown or expired session: {session_id!r}")

        handle: BrowserHandle = session.handle
        try:
            html = await self._submit_form(handle, birth_number, birth_date, captcha_input)
            record = parse_result_page(html)
        except UnexpectedPageShapeError as e:
            logger.warning(
                "Session %s: unexpected result page (%d cells)", session_id, e.cell_count,
            )
            raise
        except Exception as e:
            raise BDRISVerificationError(f"Form submission failed: {e}") from e
        finally:
            await handle.close()

        logger.info("Session %s verified", session_id)
        return record

    async def _submit_form(
        self,
        handle: BrowserHandle,
        birth_number: str,
        birth_date: str,
        captcha_input: str,
    ) -> str:
        page = handle.page
        fields = (
            (BIRTH_NUMBER_FIELD, birth_number),
            (BIRTH_DATE_FIELD, birth_date),
            (CAPTCHA_INPUT_FIELD, captcha_input),
        )

        for selector, _ in fields:
            await page.wait_for_selector(selector, timeout=self._form_wait_timeout_ms)

        for selector, value in fields:
            await page.locator(selector).press_sequentially(value)

        # form.submit() skips the button's click handlers.
        async with page.expect_navigation(
            wait_until="domcontentloaded",
            timeout=self._result_navigation_timeout_ms,
        ):
            await page.evaluate(_SUBMIT_FORM_JS)

        return await page.content()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def sweep_idle_sessions(self, ttl_seconds: float) -> int:
        """Close sessions idle for longer than ``ttl_seconds``."""
        expired = self._store.expire_idle(ttl_seconds)
        for session in expired:
            await session.handle.close()
        if expired:
            logger.info("Closed %d idle session(s)", len(expired))
        return len(expired)

    async def close(self) -> None:
        """Close every open session and stop the browser driver."""
        sessions = self._store.drain()
        for session in sessions:
            await session.handle.close()
        if sessions:
            logger.info("Closed %d open session(s) on shutdown", len(sessions))
        await self._launcher.stop()
