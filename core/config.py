"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for RouteGuard happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. default_redirect -> DEFAULT_REDIRECT). Type coercion and validation
      are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. The redirect paths are checked against the auth prefix here
      so a misconfigured deployment fails at startup instead of producing a
      redirect loop on the first guest-page visit.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    List fields (allowed_hosts, allowed_origins) are read from the environment
    as JSON, e.g. ALLOWED_HOSTS='["app.example.com"]'.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Route guard
    # ------------------------------------------------------------------

    sign_in_path: str = "/auth/sign-in"
    # Everything under this prefix is a guest page. Never a valid post-login target.
    auth_section_prefix: str = "/auth/"
    default_redirect: str = "/dashboard"

    # ------------------------------------------------------------------
    # Auth-check rate limiting (fixed window, per requested location)
    # ------------------------------------------------------------------

    auth_rate_limit_window_seconds: float = 60.0
    auth_rate_limit_max_attempts: int = 10
    rate_limit_purge_interval_seconds: float = 60.0

    # ------------------------------------------------------------------
    # Identity provider
    # ------------------------------------------------------------------

    session_api_url: str = "http://localhost:3000/api/auth/get-session"
    session_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # HTTP surface (slowapi limits use the "N/period" syntax)
    # ------------------------------------------------------------------

    api_rate_limit: str = "100/minute"
    general_rate_limit: str = "200/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    allowed_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_guard_paths(self) -> "Settings":
        """Reject route-guard settings that would break the redirect invariants.

        - default_redirect is where authenticated users land from guest pages.
          If it pointed into the auth section, require_guest would bounce the
          user between sign-in and itself.
        - sign_in_path must live inside the auth section, otherwise the
          sanitizer would accept it as a post-login target.
        """
        prefix = self.auth_section_prefix
        if not prefix.startswith("/") or not prefix.endswith("/") or prefix == "/":
            raise ValueError("AUTH_SECTION_PREFIX must look like '/auth/'.")
        if not self.default_redirect.startswith("/") or self.default_redirect.startswith("//"):
            raise ValueError("DEFAULT_REDIRECT must be a path starting with '/'.")
        if _under_prefix(self.default_redirect, prefix):
            raise ValueError("DEFAULT_REDIRECT must not point into the auth section.")
        if not _under_prefix(self.sign_in_path, prefix):
            raise ValueError("SIGN_IN_PATH must live under AUTH_SECTION_PREFIX.")
        if self.auth_rate_limit_window_seconds <= 0:
            raise ValueError("AUTH_RATE_LIMIT_WINDOW_SECONDS must be positive.")
        if self.auth_rate_limit_max_attempts < 1:
            raise ValueError("AUTH_RATE_LIMIT_MAX_ATTEMPTS must be at least 1.")
        return self


def _under_prefix(path: str, prefix: str) -> bool:
    lowered = path.lower()
    return lowered.startswith(prefix.lower()) or lowered == prefix.rstrip("/").lower()


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
