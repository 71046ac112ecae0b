"""
Shared fixtures for BDRIS verify tests.

Strategy:
- Never launch a real browser: Playwright browser/context/page objects
  are AsyncMock/MagicMock stand-ins.
- Provide a realistic 38-cell success-page fixture and its HTML.
- Keep the target URL and timeouts test-safe via env vars set before
  any bdris module is imported.
"""

from __future__ import annotations

import os

# Set dummy env vars BEFORE any bdris module is imported.
os.environ.setdefault("BDRIS_BASE_URL", "https://everify.test/")
os.environ.setdefault("BDRIS_SESSION_IDLE_TTL_SECONDS", "0")
os.environ.setdefault("BDRIS_MAX_SESSIONS", "0")

from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

import pytest


# ── Result Page Fixtures ──────────────────────────────────


SUCCESS_CELLS = [
    "Date of Registration",          # 0
    "Register Office Address",       # 1
    "Date of Issuance",              # 2
    "",                              # 3
    "01 October 2024",               # 4
    "MOKAMIA UNION PARISHAD",        # 5
    "01 October 2024",               # 6
    "Date of Birth",                 # 7
    "Birth Registration Number",     # 8
    "Sex",                           # 9
    "01 January 2003",               # 10
    "20030414771107856",             # 11
    "MALE",                          # 12
    "নিবন্ধিত ব্যক্তির নাম",              # 13
    "ইরফাত হোসেন",                   # 14
    "Registered Person Name",        # 15
    "ERFAT HOSSAIN",                 # 16
    "",                              # 17
    "জন্মস্থান",                       # 18
    "গাজীপুর",                        # 19
    "Place of Birth",                # 20
    "GAZIPUR",                       # 21
    "মাতার নাম",                      # 22
    "মমতাজ  বেগম",                    # 23
    "Mother's Name",                 # 24
    "MAMATAZ  BEGUM",                # 25
    "মাতার জাতীয়তা",                   # 26
    "বাংলাদেশী",                      # 27
    "Mother's Nationality",          # 28
    "Bangladeshi",                   # 29
    "পিতার নাম",                      # 30
    "শাহা এমরান",                     # 31
    "Father's Name",                 # 32
    "SAHA  AMRAN",                   # 33
    "পিতার জাতীয়তা",                   # 34
    "বাংলাদেশী",                      # 35
    "Father's Nationality",          # 36
    "Bangladeshi",                   # 37
]


def make_result_html(cells: list[str]) -> str:
    """Build a result page with the cells laid out in 4-column rows."""
    rows = ""
    for i in range(0, len(cells), 4):
        tds = "".join(f"<td>  {c}\n</td>" for c in cells[i:i + 4])
        rows += f"<tr>{tds}</tr>"
    return (
        "<html><body><div class='container'>"
        "<table><thead><tr><th>Header</th></tr></thead>"
        f"<tbody class='text-uppercase'>{rows}</tbody></table>"
        "</div></body></html>"
    )


@pytest.fixture
def success_cells() -> list[str]:
    return list(SUCCESS_CELLS)


@pytest.fixture
def success_html() -> str:
    return make_result_html(SUCCESS_CELLS)


@pytest.fixture
def error_page_html() -> str:
    """What the site renders after a wrong CAPTCHA: no result table."""
    return (
        "<html><body><div class='alert alert-danger'>"
        "Captcha is not valid</div>"
        "<table><tbody><tr><td>Birth Registration Number</td></tr></tbody></table>"
        "</body></html>"
    )


@pytest.fixture
def captcha_png() -> bytes:
    """Minimal PNG standing in for the CAPTCHA element screenshot."""
    from PIL import Image

    img = Image.new("RGB", (120, 40), color=(255, 255, 255))
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


# ── Playwright Mocks ──────────────────────────────────────


def make_page(html: str = "", captcha_bytes: bytes = b"png") -> MagicMock:
    """A Playwright Page stand-in with the calls the client makes."""
    page = MagicMock()
    page.goto = AsyncMock()
    page.evaluate = AsyncMock()
    page.content = AsyncMock(return_value=html)

    captcha_element = MagicMock()
    captcha_element.screenshot = AsyncMock(return_value=captcha_bytes)
    page.wait_for_selector = AsyncMock(return_value=captcha_element)

    locators: dict[str, MagicMock] = {}

    def _locator(selector: str) -> MagicMock:
        if selector not in locators:
            loc = MagicMock()
            loc.press_sequentially = AsyncMock()
            locators[selector] = loc
        return locators[selector]

    page.locator = MagicMock(side_effect=_locator)
    page.locators = locators

    nav = MagicMock()
    nav.__aenter__ = AsyncMock(return_value=None)
    nav.__aexit__ = AsyncMock(return_value=False)
    page.expect_navigation = MagicMock(return_value=nav)
    return page


def make_handle(page: MagicMock | None = None) -> MagicMock:
    """A BrowserHandle stand-in whose close() is observable."""
    handle = MagicMock()
    handle.page = page or make_page()
    handle.close = AsyncMock()
    return handle


@pytest.fixture
def mock_launcher(captcha_png, success_html):
    """BrowserLauncher stand-in; every launch() returns a fresh handle."""
    launcher = MagicMock()
    launcher.start = AsyncMock()
    launcher.stop = AsyncMock()
    launcher.handles = []

    async def _launch():
        handle = make_handle(make_page(html=success_html, captcha_bytes=captcha_png))
        launcher.handles.append(handle)
        return handle

    launcher.launch = AsyncMock(side_effect=_launch)
    return launcher
