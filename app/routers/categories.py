from fastapi import APIRouter, Request, Form
from fastapi.responses import HTMLResponse

from household.core import categories as categories_core
from household.db.models import Category
from app.dependencies import templates

router = APIRouter(prefix="/categories", tags=["categories"])


def _rows(request: Request, flash_message: str = None, flash_type: str = "success"):
    return templates.TemplateResponse(request, "partials/category_rows.html", {
        "categories": categories_core.get_all(),
        "flash_message": flash_message,
        "flash_type": flash_type,
    })


@router.get("/rows", response_class=HTMLResponse)
def categories_rows(request: Request):
    return _rows(request)


@router.post("/add", response_class=HTMLResponse)
def categories_add(request: Request, display_name: str = Form(...)):
    try:
        categories_core.add(Category(id=None, name=display_name, display_name=display_name))
    except ValueError as e:
        return _rows(request, flash_message=str(e), flash_type="error")
    return _rows(request)


@router.delete("/{category_id}", response_class=HTMLResponse)
def categories_delete(category_id: int):
    categories_core.delete(category_id)
    return HTMLResponse("")
