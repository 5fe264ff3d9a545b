from datetime import date, timedelta

import pytest

from household.core import cosmetics as cosmetics_core
from household.core import events as events_core
from household.core import reminders as reminders_core
from household.core.lifecycle import add_months
from household.db.models import Cosmetic


def _days(n: int) -> str:
    return (date.today() + timedelta(days=n)).isoformat()


# ── Core ──────────────────────────────────────────────────────────────────────

def test_add_derives_dispose_date_and_status(make_cosmetic):
    item = make_cosmetic("Derived Cream", opened_at="2020-01-01", pao_months=6, expiry_date="2030-01-01")
    assert item.dispose_at == "2020-07-01"
    assert item.status == "expired"


def test_add_requires_name():
    with pytest.raises(ValueError):
        cosmetics_core.add(Cosmetic(id=None, name="   "))


def test_add_rejects_unknown_status():
    with pytest.raises(ValueError):
        cosmetics_core.add(Cosmetic(id=None, name="Weird", status="melted"))


def test_status_follows_expiry_window(make_cosmetic):
    assert make_cosmetic("Soon Toner", expiry_date=_days(10)).status == "warning"
    assert make_cosmetic("Later Toner", expiry_date=_days(40)).status == "active"
    assert make_cosmetic("Undated Toner").status == "active"


def test_update_clearing_dates_clears_dispose(make_cosmetic):
    item = make_cosmetic("Clearable Balm", expiry_date=_days(5))
    assert item.dispose_at == _days(5)
    item.expiry_date = None
    cosmetics_core.update(item)
    saved = cosmetics_core.get(item.id)
    assert saved.dispose_at is None
    assert saved.status == "active"


def test_enrich_keeps_stored_dispose_date_on_read():
    item = Cosmetic(id=None, name="Legacy", dispose_at=_days(3))
    cosmetics_core.enrich(item)
    assert item.dispose_at == _days(3)
    assert item.status == "warning"
    cosmetics_core.enrich(item, keep_stored=False)
    assert item.dispose_at is None


def test_terminal_status_keeps_dispose_date(make_cosmetic):
    item = make_cosmetic("Archived Mask", expiry_date="2020-01-01")
    item.status = "archived"
    item.expiry_date = None
    cosmetics_core.update(item)
    saved = cosmetics_core.get(item.id)
    assert saved.status == "archived"
    assert saved.dispose_at == "2020-01-01"


def test_get_missing_returns_none():
    assert cosmetics_core.get(999999) is None


def test_get_all_filters(make_cosmetic):
    make_cosmetic("Filter Lipstick Zeta", brand="Glossy", expiry_date="2020-01-01")
    make_cosmetic("Filter Mascara Zeta", notes="waterproof", expiry_date=_days(90))

    by_brand = cosmetics_core.get_all(search="glossy")
    assert [c.name for c in by_brand] == ["Filter Lipstick Zeta"]

    expired = cosmetics_core.get_all(status="expired", search="zeta")
    assert [c.name for c in expired] == ["Filter Lipstick Zeta"]

    by_notes = cosmetics_core.get_all(search="WATERPROOF")
    assert "Filter Mascara Zeta" in [c.name for c in by_notes]


def test_get_all_filters_by_category(make_cosmetic):
    from household.core import categories as categories_core
    category_id = categories_core.get_or_create("Filter Fragrance")
    make_cosmetic("Categorised Perfume", category_id=category_id)
    items = cosmetics_core.get_all(category_id=category_id)
    assert [c.name for c in items] == ["Categorised Perfume"]
    assert items[0].category_name == "Filter Fragrance"


def test_overview_counts():
    items = [
        Cosmetic(id=1, name="a", status="warning", opened_at="2025-01-01"),
        Cosmetic(id=2, name="b", status="expired", opened_at="2025-01-01"),
        Cosmetic(id=3, name="c", status="active"),
    ]
    assert cosmetics_core.overview(items) == {"total": 3, "due_soon": 1, "expired": 1, "unopened": 1}


def test_duplicate_snapshot_is_unopened(make_cosmetic):
    item = make_cosmetic("Dupe Gel", brand="B", opened_at="2025-01-01", pao_months=12, expiry_date="2027-01-01")
    copy = cosmetics_core.duplicate_snapshot(item)
    assert copy.id is None
    assert copy.opened_at is None
    assert copy.dispose_at is None
    assert copy.status == "active"
    assert (copy.name, copy.brand, copy.pao_months, copy.expiry_date) == ("Dupe Gel", "B", 12, "2027-01-01")


def test_delete_removes_reminders_and_events(make_cosmetic):
    item = make_cosmetic("Doomed Oil", expiry_date=_days(100))
    reminders_core.sync_for_cosmetic(item, True, 14)
    events_core.log_event(item.id, "note", {"text": "hi"})
    cosmetics_core.delete(item.id)
    assert cosmetics_core.get(item.id) is None
    assert reminders_core.get_all(item.id) == []
    assert events_core.get_for_cosmetic(item.id) == []


# ── Quick actions ─────────────────────────────────────────────────────────────

def test_mark_opened_starts_pao_and_moves_reminder(make_cosmetic):
    item = make_cosmetic("Opening Serum", pao_months=6, expiry_date=_days(1000))
    reminders_core.sync_for_cosmetic(item, True, 10)

    opened = cosmetics_core.mark_opened(item.id)

    expected = add_months(date.today(), 6).isoformat()
    assert opened.opened_at == date.today().isoformat()
    assert opened.dispose_at == expected
    reminder = reminders_core.active_for(item.id)
    assert reminder.remind_at.startswith((add_months(date.today(), 6) - timedelta(days=10)).isoformat())
    assert reminder.metadata["lead_days"] == 10
    assert events_core.get_for_cosmetic(item.id)[0].event_type == "opened"


def test_record_usage(make_cosmetic):
    item = make_cosmetic("Daily Cleanser")
    used = cosmetics_core.record_usage(item.id, now="2025-06-01T08:00:00+00:00")
    assert used.last_usage_at == "2025-06-01T08:00:00+00:00"
    assert cosmetics_core.get(item.id).last_usage_at == "2025-06-01T08:00:00+00:00"
    event = events_core.get_for_cosmetic(item.id)[0]
    assert event.event_type == "usage"
    assert event.payload == {"used_at": "2025-06-01T08:00:00+00:00"}


def test_discard_dismisses_reminders(make_cosmetic):
    item = make_cosmetic("Old Foundation", expiry_date=_days(100))
    reminders_core.sync_for_cosmetic(item, True, 14)

    cosmetics_core.discard(item.id)

    saved = cosmetics_core.get(item.id)
    assert saved.status == "discarded"
    assert saved.dispose_at == date.today().isoformat()
    assert reminders_core.active_for(item.id) is None
    assert all(r.status == "dismissed" for r in saved.reminders)


def test_restock_adds_unopened_copy(make_cosmetic):
    item = make_cosmetic("Restock Shampoo", opened_at="2025-01-01", pao_months=12)
    new_id = cosmetics_core.restock(item.id)
    fresh = cosmetics_core.get(new_id)
    assert new_id != item.id
    assert fresh.name == "Restock Shampoo"
    assert fresh.opened_at is None
    event = events_core.get_for_cosmetic(item.id)[0]
    assert event.event_type == "restocked"
    assert event.payload == {"new_cosmetic_id": new_id}


def test_quick_action_missing_cosmetic_raises():
    with pytest.raises(LookupError):
        cosmetics_core.mark_opened(999999)
    with pytest.raises(LookupError):
        cosmetics_core.restock(999999)


# ── Routes ────────────────────────────────────────────────────────────────────

def test_cosmetics_page_returns_200(authed_client):
    resp = authed_client.get("/cosmetics")
    assert resp.status_code == 200
    assert "cosmetics" in resp.text.lower()


def test_cosmetics_rows_partial(authed_client):
    resp = authed_client.get("/cosmetics/rows?status=expired&q=zzz-no-match")
    assert resp.status_code == 200
    assert 'id="cosmetic-rows"' in resp.text


def test_cosmetics_add_form_returns_dialog(authed_client):
    resp = authed_client.get("/cosmetics/add")
    assert resp.status_code == 200
    assert "<dialog" in resp.text


def test_cosmetics_add_saves_item_and_schedules_reminder(authed_client):
    resp = authed_client.post("/cosmetics/add", data={
        "name": "Route Night Cream", "brand": "Lune", "category_id": "",
        "opened_at": "", "pao_months": "12", "expiry_date": _days(200),
        "status": "active", "reminder_enabled": "on", "reminder_lead_days": "20",
    })
    assert resp.status_code == 200
    assert "Route Night Cream" in resp.text
    item = next(c for c in cosmetics_core.get_all(search="Route Night Cream"))
    assert item.dispose_at == _days(200)
    reminder = reminders_core.active_for(item.id)
    assert reminder.metadata["lead_days"] == 20
    assert reminder.remind_at.startswith(_days(180))


def test_cosmetics_add_without_reminder(authed_client):
    authed_client.post("/cosmetics/add", data={
        "name": "Route No Reminder", "expiry_date": _days(200), "reminder_lead_days": "20",
    })
    item = cosmetics_core.get_all(search="Route No Reminder")[0]
    assert reminders_core.get_all(item.id) == []


def test_cosmetics_add_invalid_returns_dialog_into_slot(authed_client):
    resp = authed_client.post("/cosmetics/add", data={"name": ""})
    assert resp.status_code == 200
    assert "<dialog" in resp.text
    assert "required" in resp.text.lower()
    assert resp.headers["HX-Retarget"] == "#dialog-slot"


def test_cosmetics_preview(authed_client):
    resp = authed_client.post("/cosmetics/preview", data={
        "opened_at": "2020-01-01", "pao_months": "6", "expiry_date": "",
    })
    assert resp.status_code == 200
    assert "2020-07-01" in resp.text
    assert "Expired" in resp.text


def test_cosmetics_detail(authed_client, make_cosmetic):
    item = make_cosmetic("Detail Lotion", expiry_date=_days(60))
    cosmetics_core.record_usage(item.id)
    resp = authed_client.get(f"/cosmetics/{item.id}")
    assert resp.status_code == 200
    assert "Detail Lotion" in resp.text
    assert "usage" in resp.text


def test_cosmetics_missing_returns_404(authed_client):
    assert authed_client.get("/cosmetics/999999").status_code == 404
    assert authed_client.get("/cosmetics/999999/edit").status_code == 404
    assert authed_client.post("/cosmetics/999999/open").status_code == 404
    assert authed_client.post("/cosmetics/999999/restock").status_code == 404


def test_cosmetics_edit_form_shows_lead_days(authed_client, make_cosmetic):
    item = make_cosmetic("Edit Primer", expiry_date=_days(120))
    reminders_core.sync_for_cosmetic(item, True, 33)
    resp = authed_client.get(f"/cosmetics/{item.id}/edit")
    assert resp.status_code == 200
    assert 'value="33"' in resp.text


def test_cosmetics_edit_disabling_reminder_removes_it(authed_client, make_cosmetic):
    item = make_cosmetic("Edit Blush", expiry_date=_days(120))
    reminders_core.sync_for_cosmetic(item, True, 14)
    resp = authed_client.post(f"/cosmetics/{item.id}/edit", data={
        "name": "Edit Blush Renamed", "expiry_date": _days(120), "status": "active",
    })
    assert resp.status_code == 200
    assert "Edit Blush Renamed" in resp.text
    assert reminders_core.active_for(item.id) is None


def test_cosmetics_duplicate_form(authed_client, make_cosmetic):
    item = make_cosmetic("Duplicate Powder", opened_at="2025-01-01")
    resp = authed_client.get(f"/cosmetics/{item.id}/duplicate")
    assert resp.status_code == 200
    assert "Duplicate Powder" in resp.text
    assert 'hx-post="/cosmetics/add"' in resp.text


def test_cosmetics_quick_actions(authed_client, make_cosmetic):
    item = make_cosmetic("Quick Eyeliner", pao_months=3)
    resp = authed_client.post(f"/cosmetics/{item.id}/open")
    assert resp.status_code == 200
    assert "Marked Quick Eyeliner as opened" in resp.text
    assert authed_client.post(f"/cosmetics/{item.id}/use").status_code == 200
    assert authed_client.post(f"/cosmetics/{item.id}/discard").status_code == 200
    assert cosmetics_core.get(item.id).status == "discarded"
    assert authed_client.post(f"/cosmetics/{item.id}/explode").status_code == 404


def test_cosmetics_delete_returns_empty(authed_client, make_cosmetic):
    item = make_cosmetic("ToDelete Cosmetic")
    resp = authed_client.delete(f"/cosmetics/{item.id}")
    assert resp.status_code == 200
    assert resp.text.strip() == ""


def test_cosmetics_ai_analyze_prefills_dialog(authed_client, monkeypatch):
    from app.routers import cosmetics as cosmetics_router
    from household.core.ai_assistant import AnalyzedCosmetic

    def fake_analyze(image_bytes, media_type):
        assert image_bytes == b"fake-image"
        return AnalyzedCosmetic(name="Photo Sunscreen", brand="Sunny", category="Suncare", pao_months=12)

    monkeypatch.setattr(cosmetics_router, "analyze_cosmetic_image", fake_analyze)
    resp = authed_client.post(
        "/cosmetics/ai/analyze",
        files={"image": ("photo.png", b"fake-image", "image/png")},
    )
    assert resp.status_code == 200
    assert "Photo Sunscreen" in resp.text
    assert "Suncare" in resp.text


def test_cosmetics_ai_analyze_failure_shows_error(authed_client, monkeypatch):
    from app.routers import cosmetics as cosmetics_router

    def broken(image_bytes, media_type):
        raise ValueError("Claude API key not set.")

    monkeypatch.setattr(cosmetics_router, "analyze_cosmetic_image", broken)
    resp = authed_client.post(
        "/cosmetics/ai/analyze",
        files={"image": ("photo.jpg", b"x", "image/jpeg")},
    )
    assert resp.status_code == 200
    assert "Analysis failed" in resp.text


@pytest.mark.parametrize("pao", ["nan", "inf", "-inf", "1e400", "1e30"])
def test_cosmetics_add_ignores_unusable_pao(authed_client, pao):
    name = f"Odd PAO Cream {pao}"
    resp = authed_client.post("/cosmetics/add", data={"name": name, "pao_months": pao, "size": pao})
    assert resp.status_code == 200
    item = cosmetics_core.get_all(search=name)[0]
    assert item.pao_months is None
    assert item.size is None or item.size == float(pao)


@pytest.mark.parametrize("category_id", ["inf", "nan", "1e30", "abc"])
def test_cosmetics_rows_ignores_unusable_category(authed_client, category_id):
    resp = authed_client.get(f"/cosmetics/rows?category_id={category_id}")
    assert resp.status_code == 200
    assert 'id="cosmetic-rows"' in resp.text


def test_cosmetics_add_keeps_item_when_reminder_write_fails(authed_client, monkeypatch):
    import sqlite3

    def broken_sync(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(reminders_core, "sync_for_cosmetic", broken_sync)
    resp = authed_client.post("/cosmetics/add", data={
        "name": "Saved Despite Reminder", "expiry_date": _days(100),
        "reminder_enabled": "on", "reminder_lead_days": "14",
    })
    assert resp.status_code == 200
    assert 'id="cosmetic-rows"' in resp.text
    assert "could not be updated" in resp.text
    assert "Saved Despite Reminder" in resp.text
    assert len(cosmetics_core.get_all(search="Saved Despite Reminder")) == 1


def test_cosmetics_ai_analyze_from_url(authed_client, monkeypatch):
    from app.routers import cosmetics as cosmetics_router
    from household.core.ai_assistant import AnalyzedCosmetic

    seen = []

    def fake_analyze_url(url):
        seen.append(url)
        return AnalyzedCosmetic(name="Linked Lip Oil", pao_months=6)

    monkeypatch.setattr(cosmetics_router, "analyze_cosmetic_image_url", fake_analyze_url)
    resp = authed_client.post("/cosmetics/ai/analyze", data={"url": " https://example.com/oil.jpg "})
    assert resp.status_code == 200
    assert seen == ["https://example.com/oil.jpg"]
    assert "Linked Lip Oil" in resp.text
    assert 'value="https://example.com/oil.jpg"' in resp.text


def test_cosmetics_ai_analyze_needs_photo_or_url(authed_client):
    resp = authed_client.post("/cosmetics/ai/analyze", data={"url": ""})
    assert resp.status_code == 200
    assert "Choose a photo or paste an image URL." in resp.text
