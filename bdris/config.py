"""
Settings from environment variables.

All config is loaded via Pydantic Settings with the BDRIS_ prefix.
"""

from pydantic_settings import BaseSettings

_DEFAULT_BROWSER_ARGS = ",".join([
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--ignore-certificate-errors",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--single-process",
    "--no-zygote",
    "--no-first-run",
])


class Settings(BaseSettings):
    # Target site
    base_url: str = "https://everify.bdris.gov.bd/"

    # Browser
    headless: bool = True
    browser_args: str = _DEFAULT_BROWSER_ARGS
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/94.0.4606.61 Safari/537.36"
    )
    accept_language: str = "en-US,en;q=0.9"
    stealth_enabled: bool = True

    # Timeouts (milliseconds, Playwright convention)
    page_load_timeout_ms: int = 60000
    page_load_max_attempts: int = 3
    captcha_wait_timeout_ms: int = 60000
    form_wait_timeout_ms: int = 30000
    result_navigation_timeout_ms: int = 60000

    # Sessions
    session_idle_ttl_seconds: int = 0  # 0 = never expire
    session_sweep_interval_seconds: int = 60
    max_sessions: int = 0  # 0 = unlimited

    # App
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_prefix": "BDRIS_",
    }

    @property
    def browser_arg_list(self) -> list[str]:
        return [a.strip() for a in self.browser_args.split(",") if a.strip()]


settings = Settings()
