from fastapi import APIRouter, HTTPException, Request, Form
from fastapi.responses import HTMLResponse

from household.core import cosmetics as cosmetics_core
from household.core import reminders as reminders_core
from app.dependencies import templates

router = APIRouter(prefix="/reminders", tags=["reminders"])


def _reminder_context(**kwargs) -> dict:
    names = {c.id: c.name for c in cosmetics_core.get_all()}
    due = reminders_core.get_due()
    due_ids = {r.id for r in due}
    return {
        "due": due,
        "upcoming": [r for r in reminders_core.get_upcoming() if r.id not in due_ids],
        "cosmetic_names": names,
        **kwargs,
    }


@router.get("", response_class=HTMLResponse)
def reminders_page(request: Request):
    return templates.TemplateResponse(request, "reminders.html", {
        "active_tab": "reminders",
        **_reminder_context(),
    })


@router.get("/rows", response_class=HTMLResponse)
def reminders_rows(request: Request):
    return templates.TemplateResponse(request, "partials/reminder_rows.html", _reminder_context())


@router.post("/{reminder_id}/snooze", response_class=HTMLResponse)
def reminders_snooze(request: Request, reminder_id: int, days: int = Form(1)):
    try:
        reminders_core.snooze(reminder_id, days=days)
    except LookupError:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return templates.TemplateResponse(request, "partials/reminder_rows.html", _reminder_context(
        flash_message=f"Snoozed for {reminders_core.clamp_snooze_days(days)} day(s).",
    ))


@router.post("/{reminder_id}/{action}", response_class=HTMLResponse)
def reminders_action(request: Request, reminder_id: int, action: str):
    handlers = {"dismiss": reminders_core.dismiss, "sent": reminders_core.mark_sent}
    if action not in handlers:
        raise HTTPException(status_code=404, detail="Unknown action")
    try:
        handlers[action](reminder_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return templates.TemplateResponse(request, "partials/reminder_rows.html", _reminder_context())
