# Services/spare_part_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from pydantic import BaseModel
from typing import List, Optional, Union
import logging

from schemas import Redirect, SparePart
from Services.catalog import SparePartFilters, fetch_spare_parts, get_spare_part, spare_part_client_filter
from Services.dependencies import get_session, get_store, get_translator, login_redirect
from Services.document_store import DocumentStore
from Services.errors import StoreError
from Services.formatters import format_currency
from Services.i18n import Translator
from Services.listing import PAGE_SIZE, distinct_values, paginate
from Services.session_state import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={404: {"description": "Spare part not found"}}
)

class SparePartCard(SparePart):
    price_label: str = ""
    in_stock: bool = True
    availability: str = ""
    saved: bool = False

class SparePartPage(BaseModel):
    items: List[SparePartCard]
    page: int
    pages: int
    total: int
    page_size: int
    has_previous: bool
    has_next: bool
    categories: List[str]
    brands: List[str]

class ToggleResponse(BaseModel):
    saved: bool

def to_card(part: SparePart, session: Optional[SessionContext], translator: Translator) -> SparePartCard:
    return SparePartCard(
        **part.model_dump(),
        price_label=format_currency(part.price),
        in_stock=part.available,
        # Zero stock means the part cannot be inquired about
        availability="" if part.available else translator.t("spareParts.outOfStock"),
        saved=bool(session and session.saved("saved_parts").is_saved(part.id)),
    )

@router.get("", response_model=SparePartPage)
async def list_spare_parts(
    category: str = "",
    brand: str = "",
    min_price: str = "",
    max_price: str = "",
    condition: str = "",
    page: int = Query(default=1),
    store: DocumentStore = Depends(get_store),
    session: Optional[SessionContext] = Depends(get_session),
    translator: Translator = Depends(get_translator)
):
    try:
        parts = fetch_spare_parts(store)
    except StoreError as e:
        logger.error(f"Error fetching spare parts: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=translator.t("spareParts.errors.load")
        )

    filters = SparePartFilters(category=category, brand=brand, min_price=min_price,
                               max_price=max_price, condition=condition)
    filtered = spare_part_client_filter(parts, filters)
    result = paginate(filtered, page, PAGE_SIZE)
    return SparePartPage(
        **result.as_dict(lambda p: to_card(p, session, translator)),
        categories=distinct_values(parts, "category"),
        brands=distinct_values(parts, "brand"),
    )

@router.get("/{part_id}", response_model=SparePartCard)
async def spare_part_details(
    part_id: str,
    store: DocumentStore = Depends(get_store),
    session: Optional[SessionContext] = Depends(get_session),
    translator: Translator = Depends(get_translator)
):
    return to_card(get_spare_part(store, part_id), session, translator)

@router.post("/{part_id}/save", response_model=Union[ToggleResponse, Redirect])
async def toggle_saved_part(
    part_id: str,
    store: DocumentStore = Depends(get_store),
    session: Optional[SessionContext] = Depends(get_session)
):
    if session is None:
        return login_redirect(f"/spare-parts/{part_id}", "save")
    get_spare_part(store, part_id)
    return ToggleResponse(saved=session.saved("saved_parts").toggle(part_id))
