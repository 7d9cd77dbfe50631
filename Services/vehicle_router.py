# Services/vehicle_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from pydantic import BaseModel
from typing import List, Optional, Union
import logging

from schemas import Redirect, Vehicle
from Services.catalog import VehicleFeed, VehicleFilters, get_vehicle
from Services.dependencies import get_session, get_store, get_translator, login_redirect
from Services.document_store import DocumentStore
from Services.formatters import format_currency
from Services.i18n import Translator
from Services.listing import PAGE_SIZE, distinct_values, paginate
from Services.session_state import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={404: {"description": "Vehicle not found"}}
)

class VehicleCard(Vehicle):
    price_label: str = ""
    saved: bool = False
    liked: bool = False

class VehiclePage(BaseModel):
    items: List[VehicleCard]
    page: int
    pages: int
    total: int
    page_size: int
    has_previous: bool
    has_next: bool
    models: List[str]
    years: List[int]

class ToggleResponse(BaseModel):
    saved: bool

def to_card(vehicle: Vehicle, session: Optional[SessionContext]) -> VehicleCard:
    return VehicleCard(
        **vehicle.model_dump(),
        price_label=format_currency(vehicle.price),
        saved=bool(session and session.saved("saved_vehicles").is_saved(vehicle.id)),
        liked=bool(session and session.saved("liked_vehicles").is_saved(vehicle.id)),
    )

@router.get("", response_model=VehiclePage)
async def list_vehicles(
    model: str = "",
    year: str = "",
    min_price: str = "",
    max_price: str = "",
    condition: str = "",
    is_trade_in: bool = False,
    page: int = Query(default=1),
    store: DocumentStore = Depends(get_store),
    session: Optional[SessionContext] = Depends(get_session),
    translator: Translator = Depends(get_translator)
):
    filters = VehicleFilters(model=model, year=year, min_price=min_price, max_price=max_price,
                             condition=condition, is_trade_in=is_trade_in)
    state = VehicleFeed(store, translator).load(filters)
    if state.error:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=state.error
        )

    result = paginate(state.items, page, PAGE_SIZE)
    return VehiclePage(
        **result.as_dict(lambda v: to_card(v, session)),
        # Options come from the loaded result set, so they narrow with the filters
        models=distinct_values(state.items, "name"),
        years=distinct_values(state.items, "year"),
    )

@router.get("/{vehicle_id}", response_model=VehicleCard)
async def vehicle_details(
    vehicle_id: str,
    store: DocumentStore = Depends(get_store),
    session: Optional[SessionContext] = Depends(get_session)
):
    return to_card(get_vehicle(store, vehicle_id), session)

def _toggle(kind: str, vehicle_id: str, action: str, store: DocumentStore,
            session: Optional[SessionContext]) -> Union[ToggleResponse, Redirect]:
    if session is None:
        return login_redirect(f"/vehicle/{vehicle_id}", action)
    get_vehicle(store, vehicle_id)
    return ToggleResponse(saved=session.saved(kind).toggle(vehicle_id))

@router.post("/{vehicle_id}/save", response_model=Union[ToggleResponse, Redirect])
async def toggle_saved_vehicle(
    vehicle_id: str,
    store: DocumentStore = Depends(get_store),
    session: Optional[SessionContext] = Depends(get_session)
):
    return _toggle("saved_vehicles", vehicle_id, "save", store, session)

@router.post("/{vehicle_id}/like", response_model=Union[ToggleResponse, Redirect])
async def toggle_liked_vehicle(
    vehicle_id: str,
    store: DocumentStore = Depends(get_store),
    session: Optional[SessionContext] = Depends(get_session)
):
    return _toggle("liked_vehicles", vehicle_id, "like", store, session)
