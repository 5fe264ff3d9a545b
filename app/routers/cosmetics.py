import logging
import math
import sqlite3
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Request, UploadFile, File, Form
from fastapi.responses import HTMLResponse

from household.config import get_default_lead_days
from household.core import categories as categories_core
from household.core import cosmetics as cosmetics_core
from household.core import events as events_core
from household.core import reminders as reminders_core
from household.core.ai_assistant import analyze_cosmetic_image, analyze_cosmetic_image_url
from household.core.lifecycle import clamp_lead_days, preview
from household.db.models import COSMETIC_STATUSES, Cosmetic
from app.dependencies import templates

router = APIRouter(prefix="/cosmetics", tags=["cosmetics"])
logger = logging.getLogger(__name__)


def _ctx(request: Request, **kwargs) -> dict:
    return {"active_tab": "cosmetics", **kwargs}


def _text(form, key: str):
    value = (form.get(key) or "").strip()
    return value or None


def _parse_float(text):
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _parse_int(text):
    number = _parse_float(text)
    # SQLite integers are signed 64-bit
    if number is None or abs(number) >= 2 ** 63:
        return None
    return int(number)


def _cosmetic_from_form(form, existing: Cosmetic = None) -> Cosmetic:
    """Build a Cosmetic from dialog fields, keeping fields the form doesn't carry."""
    status = form.get("status") or (existing.status if existing else "active")
    if status not in COSMETIC_STATUSES:
        status = "active"
    cosmetic = existing or Cosmetic(id=None, name="")
    cosmetic.name = (form.get("name") or "").strip()
    cosmetic.brand = _text(form, "brand")
    cosmetic.category_id = _parse_int(form.get("category_id"))
    cosmetic.size = _parse_float(form.get("size"))
    cosmetic.unit = _text(form, "unit")
    cosmetic.batch_code = _text(form, "batch_code")
    cosmetic.purchase_date = _text(form, "purchase_date")
    cosmetic.opened_at = _text(form, "opened_at")
    cosmetic.expiry_date = _text(form, "expiry_date")
    cosmetic.pao_months = _parse_int(form.get("pao_months"))
    cosmetic.notes = _text(form, "notes")
    cosmetic.image_url = _text(form, "image_url")
    cosmetic.status = status
    return cosmetic


def _reminder_settings(form) -> tuple[bool, int]:
    enabled = form.get("reminder_enabled") is not None
    return enabled, clamp_lead_days(form.get("reminder_lead_days"))


def _rows_response(request: Request, status: str = "", category_id: str = "", q: str = "",
                   flash_message: str = None, flash_type: str = "success"):
    items = cosmetics_core.get_all(
        status=status or None,
        category_id=_parse_int(category_id),
        search=q or None,
    )
    return templates.TemplateResponse(request, "partials/cosmetic_rows.html", {
        "items": items,
        "overview": cosmetics_core.overview(cosmetics_core.get_all()),
        "flash_message": flash_message,
        "flash_type": flash_type,
    })


def _dialog(request: Request, cosmetic, reminder_enabled: bool, lead_days: int,
            action: str, flash_message: str = None):
    lifecycle = preview(
        cosmetic.opened_at if cosmetic else None,
        cosmetic.pao_months if cosmetic else None,
        cosmetic.expiry_date if cosmetic else None,
        cosmetic.status if cosmetic else None,
        lead_days=lead_days,
        reminder_enabled=reminder_enabled,
    )
    response = templates.TemplateResponse(request, "partials/cosmetic_dialog.html", {
        "cosmetic": cosmetic,
        "categories": categories_core.get_all(),
        "statuses": COSMETIC_STATUSES,
        "reminder_enabled": reminder_enabled,
        "lead_days": lead_days,
        "lifecycle": lifecycle,
        "action": action,
        "flash_message": flash_message,
        "flash_type": "error",
    })
    if flash_message:
        # The dialog form targets the rows; send a failed save back into the dialog instead.
        response.headers["HX-Retarget"] = "#dialog-slot"
        response.headers["HX-Reswap"] = "innerHTML"
    return response


def _sync_reminder(cosmetic: Cosmetic, enabled: bool, lead_days: int, note: str):
    """Write the reminder after the cosmetic is saved. Returns a flash message on failure."""
    try:
        reminders_core.sync_for_cosmetic(cosmetic, enabled, lead_days, note=note)
    except (sqlite3.Error, ValueError) as e:
        logger.warning("Reminder update failed for cosmetic %s: %s", cosmetic.id, e)
        return f"Saved, but the reminder could not be updated: {e}"
    return None


@router.get("", response_class=HTMLResponse)
def cosmetics_page(request: Request, status: str = "", category_id: str = "", q: str = ""):
    items = cosmetics_core.get_all(
        status=status or None,
        category_id=_parse_int(category_id),
        search=q or None,
    )
    return templates.TemplateResponse(request, "cosmetics.html", _ctx(
        request,
        items=items,
        overview=cosmetics_core.overview(cosmetics_core.get_all()),
        categories=categories_core.get_all(),
        statuses=COSMETIC_STATUSES,
        filter_status=status,
        filter_category=category_id,
        filter_q=q,
        today=date.today().isoformat(),
    ))


@router.get("/rows", response_class=HTMLResponse)
def cosmetics_rows(request: Request, status: str = "", category_id: str = "", q: str = ""):
    return _rows_response(request, status, category_id, q)


@router.post("/preview", response_class=HTMLResponse)
async def cosmetics_preview(request: Request):
    """Lifecycle summary for the dialog, re-rendered as the user edits dates."""
    form = await request.form()
    enabled, lead_days = _reminder_settings(form)
    lifecycle = preview(
        form.get("opened_at"),
        form.get("pao_months"),
        form.get("expiry_date"),
        form.get("status") or None,
        lead_days=lead_days,
        reminder_enabled=enabled,
    )
    return templates.TemplateResponse(request, "partials/lifecycle_preview.html", {
        "lifecycle": lifecycle,
    })


@router.get("/add", response_class=HTMLResponse)
def cosmetics_add_form(request: Request):
    return _dialog(request, None, True, get_default_lead_days(), "/cosmetics/add")


@router.post("/add", response_class=HTMLResponse)
async def cosmetics_add(request: Request):
    form = await request.form()
    cosmetic = _cosmetic_from_form(form)
    enabled, lead_days = _reminder_settings(form)
    try:
        cosmetic.id = cosmetics_core.add(cosmetic)
    except ValueError as e:
        return _dialog(request, cosmetic, enabled, lead_days, "/cosmetics/add", flash_message=str(e))
    warning = _sync_reminder(cosmetic, enabled, lead_days, "Auto-scheduled from intake")
    if warning:
        return _rows_response(request, flash_message=warning, flash_type="error")
    return _rows_response(request, flash_message=f"Added {cosmetic.name}.")


@router.post("/ai/analyze", response_class=HTMLResponse)
async def cosmetics_ai_analyze(
    request: Request,
    image: Optional[UploadFile] = File(None),
    url: str = Form(""),
):
    """Pre-fill the add dialog from a product photo, uploaded or linked."""
    lead_days = get_default_lead_days()
    url = url.strip()
    has_upload = image is not None and bool(image.filename)
    if not has_upload and not url:
        return _dialog(request, None, True, lead_days, "/cosmetics/add",
                       flash_message="Choose a photo or paste an image URL.")
    try:
        if has_upload:
            media_type = (image.content_type or "image/jpeg").lower()
            result = analyze_cosmetic_image(await image.read(), media_type)
        else:
            result = analyze_cosmetic_image_url(url)
    except Exception as e:
        logger.warning("Photo analysis failed: %s", e)
        return _dialog(request, None, True, lead_days, "/cosmetics/add",
                       flash_message=f"Analysis failed: {e}")
    if result is None:
        return _dialog(request, None, True, lead_days, "/cosmetics/add",
                       flash_message="Could not read the product details from that photo.")

    category_id = None
    if result.category:
        try:
            category_id = categories_core.get_or_create(result.category)
        except ValueError as e:
            logger.warning("Could not create category %r: %s", result.category, e)
    cosmetic = Cosmetic(
        id=None,
        name=result.name or "",
        brand=result.brand,
        category_id=category_id,
        size=result.size,
        unit=result.unit,
        pao_months=result.pao_months,
        notes=result.notes or result.description,
        image_url=None if has_upload else url,
    )
    return _dialog(request, cosmetic, True, lead_days, "/cosmetics/add")


@router.get("/{cosmetic_id}", response_class=HTMLResponse)
def cosmetics_detail(request: Request, cosmetic_id: int):
    cosmetic = cosmetics_core.get(cosmetic_id)
    if cosmetic is None:
        raise HTTPException(status_code=404, detail="Cosmetic not found")
    return templates.TemplateResponse(request, "partials/cosmetic_detail.html", {
        "cosmetic": cosmetic,
        "events": events_core.get_for_cosmetic(cosmetic_id),
        "lead_days": reminders_core.lead_days_for(cosmetic, default=get_default_lead_days()),
    })


@router.get("/{cosmetic_id}/edit", response_class=HTMLResponse)
def cosmetics_edit_form(request: Request, cosmetic_id: int):
    cosmetic = cosmetics_core.get(cosmetic_id)
    if cosmetic is None:
        raise HTTPException(status_code=404, detail="Cosmetic not found")
    enabled = reminders_core.active_for(cosmetic_id) is not None
    lead_days = reminders_core.lead_days_for(cosmetic, default=get_default_lead_days())
    return _dialog(request, cosmetic, enabled, lead_days, f"/cosmetics/{cosmetic_id}/edit")


@router.post("/{cosmetic_id}/edit", response_class=HTMLResponse)
async def cosmetics_edit(request: Request, cosmetic_id: int):
    existing = cosmetics_core.get(cosmetic_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Cosmetic not found")
    form = await request.form()
    cosmetic = _cosmetic_from_form(form, existing)
    enabled, lead_days = _reminder_settings(form)
    try:
        cosmetics_core.update(cosmetic)
    except ValueError as e:
        return _dialog(request, cosmetic, enabled, lead_days, f"/cosmetics/{cosmetic_id}/edit",
                       flash_message=str(e))
    warning = _sync_reminder(cosmetic, enabled, lead_days, "Scheduled on edit")
    if warning:
        return _rows_response(request, flash_message=warning, flash_type="error")
    return _rows_response(request, flash_message=f"Saved {cosmetic.name}.")


@router.get("/{cosmetic_id}/duplicate", response_class=HTMLResponse)
def cosmetics_duplicate_form(request: Request, cosmetic_id: int):
    cosmetic = cosmetics_core.get(cosmetic_id)
    if cosmetic is None:
        raise HTTPException(status_code=404, detail="Cosmetic not found")
    snapshot = cosmetics_core.duplicate_snapshot(cosmetic)
    return _dialog(request, snapshot, True, get_default_lead_days(), "/cosmetics/add")


@router.delete("/{cosmetic_id}", response_class=HTMLResponse)
def cosmetics_delete(cosmetic_id: int):
    cosmetics_core.delete(cosmetic_id)
    return HTMLResponse("")


# ── Quick actions ─────────────────────────────────────────────────────────────

_QUICK_ACTIONS = {
    "open": (cosmetics_core.mark_opened, "Marked {name} as opened."),
    "use": (cosmetics_core.record_usage, "Logged a use of {name}."),
    "discard": (cosmetics_core.discard, "Discarded {name}."),
}


@router.post("/{cosmetic_id}/restock", response_class=HTMLResponse)
def cosmetics_restock(request: Request, cosmetic_id: int):
    try:
        cosmetics_core.restock(cosmetic_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Cosmetic not found")
    return _rows_response(request, flash_message="Added a fresh unopened one.")


@router.post("/{cosmetic_id}/{action}", response_class=HTMLResponse)
def cosmetics_quick_action(request: Request, cosmetic_id: int, action: str):
    if action not in _QUICK_ACTIONS:
        raise HTTPException(status_code=404, detail="Unknown action")
    handler, message = _QUICK_ACTIONS[action]
    try:
        cosmetic = handler(cosmetic_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Cosmetic not found")
    return _rows_response(request, flash_message=message.format(name=cosmetic.name))
