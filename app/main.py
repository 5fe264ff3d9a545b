import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import quote
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from household.core.ai_assistant import ModelCatalog
from household.db.database import init_db
from app.dependencies import verify_session_token, is_public, SESSION_COOKIE
from app.routers import auth, categories, cosmetics, reminders, settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.model_catalog = ModelCatalog(
        ttl_seconds=float(os.environ.get("MODEL_CACHE_TTL", "3600")),
    )
    logger.info("Household tracker started")
    yield


app = FastAPI(lifespan=lifespan)

app.mount("/static", StaticFiles(directory=Path(__file__).parent / "static"), name="static")


def _login_url(request: Request) -> str:
    """Login page that sends the user back to the page they asked for."""
    if request.method != "GET" or request.headers.get("HX-Request"):
        return "/login"
    target = request.url.path
    if request.url.query:
        target += "?" + request.url.query
    return "/login?next=" + quote(target, safe="")


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    if not is_public(request.url.path):
        token = request.cookies.get(SESSION_COOKIE)
        if not token or not verify_session_token(token):
            return RedirectResponse(url=_login_url(request), status_code=302)
    return await call_next(request)


app.include_router(auth.router)
app.include_router(cosmetics.router)
app.include_router(reminders.router)
app.include_router(categories.router)
app.include_router(settings.router)
