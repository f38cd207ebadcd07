"""
web/routes.py -- Jinja2 template routes for the RouteGuard web UI.

These routes serve server-rendered HTML. Access control happens in the
dependencies from auth/dependencies.py, awaited before the handler body runs:

  require_user   -- protected pages; unauthenticated visitors are redirected
                    to /auth/sign-in?redirect=<path>[&reason=expired|error]
  require_guest  -- sign-in / sign-up; signed-in users are redirected to the
                    default post-login page

Sign-in and sign-up submit straight to the identity provider. This app never
sees credentials.

Routes:
  GET  /               -- public landing page
  GET  /dashboard      -- profile page (auth required)
  GET  /auth/sign-in   -- sign-in page (guests only)
  GET  /auth/sign-up   -- sign-up page (guests only)
"""

from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import get_sanitizer, require_guest, require_user
from auth.models import User
from core.config import get_settings

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# Whitelist mapping for ?reason= query params on the auth pages.
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted reason query strings.
_REASON_MESSAGES: dict[str, str] = {
    "expired": "Your session has expired. Please sign in again.",
    "error": "We could not verify your session. Please sign in again.",
}


def _auth_page_context(request: Request) -> dict:
    """Common template context for the sign-in and sign-up pages.

    ?redirect= is re-validated here even though the guard produced it: the
    query string is user-controlled by the time it reaches this page.
    """
    settings = get_settings()
    callback_url = get_sanitizer().sanitize(request.query_params.get("redirect"), settings.default_redirect)
    return {
        "reason_msg": _REASON_MESSAGES.get(request.query_params.get("reason", "")),
        "callback_url": callback_url,
    }


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "index.html")


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request, user: User = Depends(require_user)) -> HTMLResponse:
    return templates.TemplateResponse(request, "dashboard.html", {"user": user})


@router.get("/auth/sign-in", response_class=HTMLResponse, dependencies=[Depends(require_guest)])
async def sign_in(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "sign_in.html", _auth_page_context(request))


@router.get("/auth/sign-up", response_class=HTMLResponse, dependencies=[Depends(require_guest)])
async def sign_up(request: Request) -> HTMLResponse:
    context = _auth_page_context(request)
    context["sign_in_url"] = get_settings().sign_in_path
    return templates.TemplateResponse(request, "sign_up.html", context)
