import logging

from fastapi import APIRouter, Request, Form
from fastapi.responses import HTMLResponse, RedirectResponse

from household.config import get_default_lead_days, get_model, get_setting, set_setting
from household.core import categories as categories_core
from household.core.ai_assistant import vision_capable
from household.core.lifecycle import MAX_LEAD_DAYS, clamp_lead_days
from app.dependencies import templates

router = APIRouter(prefix="/settings", tags=["settings"])
logger = logging.getLogger(__name__)


def _available_models(request: Request, key_set: bool) -> tuple[list[str], str]:
    """Vision-capable models for the picker, plus an error message if listing failed."""
    if not key_set:
        return [], None
    try:
        models = request.app.state.model_catalog.get_models()
    except Exception as e:
        logger.warning("Could not list models: %s", e)
        return [], f"Could not load the model list: {e}"
    return [m for m in models if vision_capable(m)], None


@router.get("", response_class=HTMLResponse)
def settings_page(request: Request, saved: str = ""):
    key = get_setting("claude_api_key") or ""
    masked = key[:8] + "..." if len(key) > 8 else ""
    models, models_error = _available_models(request, bool(key))
    flash_message = "Settings saved." if saved else models_error
    return templates.TemplateResponse(request, "settings.html", {
        "active_tab": "settings",
        "key_set": bool(key),
        "masked_key": masked,
        "models": models,
        "current_model": get_model(),
        "lead_days": get_default_lead_days(),
        "max_lead_days": MAX_LEAD_DAYS,
        "categories": categories_core.get_all(),
        "flash_message": flash_message,
        "flash_type": "success" if saved else "error",
    })


@router.post("")
def settings_save(
    request: Request,
    claude_api_key: str = Form(""),
    claude_model: str = Form(""),
    default_lead_days: str = Form(""),
):
    if claude_api_key.strip():
        set_setting("claude_api_key", claude_api_key.strip())
        request.app.state.model_catalog.invalidate()
    if claude_model.strip():
        set_setting("claude_model", claude_model.strip())
    if default_lead_days.strip():
        set_setting("default_lead_days", str(clamp_lead_days(default_lead_days)))
    return RedirectResponse(url="/settings?saved=1", status_code=303)
