import logging
import os
from fastapi import APIRouter, Request, Form
from fastapi.responses import HTMLResponse, RedirectResponse
from app.dependencies import create_session_token, templates, SESSION_COOKIE, SESSION_MAX_AGE

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)

HOME = "/cosmetics"


def _app_password() -> str:
    """Read APP_PASSWORD at call time so tests can set it via env."""
    return os.environ.get("APP_PASSWORD", "")


def _local_path(target: str) -> str:
    """Only follow next= to paths on this site."""
    if target and target.startswith("/") and not target.startswith("//") and not target.startswith("/login"):
        return target
    return HOME


@router.get("/", response_class=HTMLResponse)
async def root():
    return RedirectResponse(url=HOME, status_code=302)


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, next: str = ""):
    return templates.TemplateResponse(request, "login.html", {"next": _local_path(next)})


@router.post("/login")
async def login(request: Request, password: str = Form(...), next: str = Form("")):
    if password and password == _app_password():
        resp = RedirectResponse(url=_local_path(next), status_code=302)
        resp.set_cookie(
            SESSION_COOKIE,
            create_session_token(),
            httponly=True,
            samesite="lax",
            max_age=SESSION_MAX_AGE,
        )
        return resp
    logger.warning("Failed login from %s", request.client.host if request.client else "unknown")
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error": "Invalid password", "next": _local_path(next)},
        status_code=200,
    )


@router.post("/logout")
async def logout():
    resp = RedirectResponse(url="/login", status_code=302)
    resp.delete_cookie(SESSION_COOKIE)
    return resp
