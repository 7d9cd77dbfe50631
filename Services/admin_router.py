# Services/admin_router.py
from fastapi import APIRouter, HTTPException, Depends, File, Form, Query, Response, UploadFile, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field, ValidationError
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import asyncio
import logging

from schemas import COLLECTIONS, ChatMessage, InboxEntry, SparePartBase, Vehicle, VehicleBase
from Services import back_office
from Services.catalog import SparePartFeed, fetch_all_vehicles, fetch_spare_parts
from Services.chat import admin_reply, get_thread, mark_thread_read, ADMIN_AUTHOR
from Services.dependencies import SESSION_COOKIE, get_container, get_storage, get_store, get_translator, require_admin
from Services.document_store import DocumentStore
from Services.i18n import Translator
from Services.inbox import ENTRY_TYPES, InboxAggregator, conversations, export_csv, filter_entries
from Services.listing import ADMIN_PAGE_SIZE, paginate
from Services.object_storage import ObjectStorage
from Services.session_state import SessionContext
from Services.submissions import promote_submission

logger = logging.getLogger(__name__)

router = APIRouter(
    dependencies=[Depends(require_admin)],
    responses={403: {"description": "Admin only"}}
)

# Sockets do not go through router dependencies, so they check the role themselves
socket_router = APIRouter()

class AdminPage(BaseModel):
    items: List[Any]
    page: int
    pages: int
    total: int
    page_size: int
    has_previous: bool
    has_next: bool

class VehicleUpdate(BaseModel):
    name: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = Field(None, ge=0)
    mileage: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    condition: Optional[str] = None
    description: Optional[str] = None
    features: Optional[List[str]] = None
    images: Optional[List[str]] = None
    sold: Optional[bool] = None
    is_trade_in: Optional[bool] = None

class CreatedResponse(BaseModel):
    id: str

class ReplyRequest(BaseModel):
    text: str

def _csv_response(content: str, name: str) -> Response:
    stamp = datetime.now(timezone.utc).date().isoformat()
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{name}-export-{stamp}.csv"'}
    )

def _parse_payload(model, payload: str):
    try:
        return model.model_validate_json(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False)
        )

# ----------------------------------------------------------------------
# Overview and customers
# ----------------------------------------------------------------------

@router.get("/overview")
async def overview(store: DocumentStore = Depends(get_store)):
    return back_office.overview(store)

@router.get("/customers", response_model=List[back_office.Customer])
async def customers(store: DocumentStore = Depends(get_store)):
    return back_office.list_customers(store)

# ----------------------------------------------------------------------
# Vehicles
# ----------------------------------------------------------------------

@router.get("/vehicles", response_model=AdminPage)
async def list_vehicles(
    search: str = "",
    status_filter: str = Query(default="all", alias="status", pattern="^(all|in_stock|sold)$"),
    page: int = 1,
    store: DocumentStore = Depends(get_store)
):
    vehicles = back_office.filter_vehicles(fetch_all_vehicles(store), search, status_filter)
    return paginate(vehicles, page, ADMIN_PAGE_SIZE).as_dict(lambda v: v.model_dump(mode="json"))

@router.get("/vehicles/export")
async def export_vehicles(
    search: str = "",
    status_filter: str = Query(default="all", alias="status", pattern="^(all|in_stock|sold)$"),
    store: DocumentStore = Depends(get_store)
):
    vehicles = back_office.filter_vehicles(fetch_all_vehicles(store), search, status_filter)
    return _csv_response(back_office.vehicles_csv(vehicles), "inventory")

@router.get("/vehicles/report")
async def vehicles_report(
    search: str = "",
    status_filter: str = Query(default="all", alias="status", pattern="^(all|in_stock|sold)$"),
    store: DocumentStore = Depends(get_store)
):
    vehicles = back_office.filter_vehicles(fetch_all_vehicles(store), search, status_filter)
    return back_office.vehicle_report(vehicles)

@router.post("/vehicles", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    vehicle: str = Form(..., description="Vehicle fields as JSON"),
    images: List[UploadFile] = File(default=[]),
    store: DocumentStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_storage)
):
    data = _parse_payload(VehicleBase, vehicle)
    files = [(image.filename or "image", await image.read()) for image in images]
    return CreatedResponse(id=back_office.create_vehicle(store, storage, data, files))

@router.put("/vehicles/{vehicle_id}", response_model=Vehicle)
async def update_vehicle(
    vehicle_id: str,
    changes: VehicleUpdate,
    store: DocumentStore = Depends(get_store)
):
    try:
        return back_office.update_vehicle(store, vehicle_id, changes.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False)
        )

@router.post("/vehicles/{vehicle_id}/toggle-sold")
async def toggle_sold(vehicle_id: str, store: DocumentStore = Depends(get_store)):
    return {"id": vehicle_id, "sold": back_office.toggle_sold(store, vehicle_id)}

@router.delete("/vehicles/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vehicle(
    vehicle_id: str,
    store: DocumentStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_storage)
):
    back_office.delete_with_images(store, storage, COLLECTIONS["vehicles"], vehicle_id)
    return None

# ----------------------------------------------------------------------
# Spare parts
# ----------------------------------------------------------------------

@router.get("/spare-parts", response_model=AdminPage)
async def list_parts(
    search: str = "",
    status_filter: str = Query(default="all", alias="status", pattern="^(all|in_stock|out_of_stock)$"),
    page: int = 1,
    store: DocumentStore = Depends(get_store)
):
    parts = back_office.filter_parts(fetch_spare_parts(store), search, status_filter)
    return paginate(parts, page, ADMIN_PAGE_SIZE).as_dict(lambda p: p.model_dump(mode="json"))

@router.get("/spare-parts/export")
async def export_parts(
    search: str = "",
    status_filter: str = Query(default="all", alias="status", pattern="^(all|in_stock|out_of_stock)$"),
    store: DocumentStore = Depends(get_store)
):
    parts = back_office.filter_parts(fetch_spare_parts(store), search, status_filter)
    return _csv_response(back_office.parts_csv(parts), "spare-parts")

@router.get("/spare-parts/report")
async def parts_report(
    search: str = "",
    status_filter: str = Query(default="all", alias="status", pattern="^(all|in_stock|out_of_stock)$"),
    store: DocumentStore = Depends(get_store)
):
    parts = back_office.filter_parts(fetch_spare_parts(store), search, status_filter)
    return back_office.parts_report(parts)

@router.post("/spare-parts", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_part(
    part: str = Form(..., description="Spare part fields as JSON"),
    images: List[UploadFile] = File(default=[]),
    store: DocumentStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_storage)
):
    data = _parse_payload(SparePartBase, part)
    files = [(image.filename or "image", await image.read()) for image in images]
    return CreatedResponse(id=back_office.create_spare_part(store, storage, data, files))

@router.delete("/spare-parts/{part_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_part(
    part_id: str,
    store: DocumentStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_storage)
):
    back_office.delete_with_images(store, storage, COLLECTIONS["spare_parts"], part_id)
    return None

# ----------------------------------------------------------------------
# Message center
# ----------------------------------------------------------------------

def _load_inbox(store: DocumentStore, translator: Translator) -> InboxAggregator:
    inbox = InboxAggregator(store, translator)
    inbox.fetch()
    if inbox.error:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=inbox.error
        )
    return inbox

def _find_entry(inbox: InboxAggregator, entry_type: str, entry_id: str) -> InboxEntry:
    if entry_type not in ENTRY_TYPES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown message type: {entry_type}"
        )
    entry = inbox.find(entry_type, entry_id)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found"
        )
    return entry

@router.get("/inbox")
async def list_inbox(
    kind: str = Query(default="all", pattern="^(all|chat|contact|car)$"),
    submission_type: str = Query(default="all", pattern="^(all|regular|trade-in)$"),
    search: str = "",
    page: int = 1,
    store: DocumentStore = Depends(get_store),
    translator: Translator = Depends(get_translator)
):
    inbox = _load_inbox(store, translator)
    entries = filter_entries(inbox.entries, kind, submission_type, search)
    result = paginate(entries, page, ADMIN_PAGE_SIZE).as_dict(lambda e: e.model_dump(mode="json"))
    result["unread"] = inbox.unread
    return result

@router.get("/inbox/export")
async def export_inbox(
    kind: str = Query(default="all", pattern="^(all|chat|contact|car)$"),
    submission_type: str = Query(default="all", pattern="^(all|regular|trade-in)$"),
    search: str = "",
    store: DocumentStore = Depends(get_store),
    translator: Translator = Depends(get_translator)
):
    inbox = _load_inbox(store, translator)
    return _csv_response(export_csv(filter_entries(inbox.entries, kind, submission_type, search)), "messages")

@router.put("/inbox/{entry_type}/{entry_id}/read")
async def mark_read(
    entry_type: str,
    entry_id: str,
    store: DocumentStore = Depends(get_store),
    translator: Translator = Depends(get_translator)
):
    inbox = _load_inbox(store, translator)
    if not inbox.mark_as_read(_find_entry(inbox, entry_type, entry_id)):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=translator.t("common.unexpected")
        )
    return {"type": entry_type, "id": entry_id, "read": True}

@router.delete("/inbox/{entry_type}/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_type: str,
    entry_id: str,
    store: DocumentStore = Depends(get_store),
    translator: Translator = Depends(get_translator)
):
    inbox = _load_inbox(store, translator)
    if not inbox.delete(_find_entry(inbox, entry_type, entry_id)):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=translator.t("common.unexpected")
        )
    return None

@router.post("/submissions/{submission_id}/promote", response_model=CreatedResponse,
             status_code=status.HTTP_201_CREATED)
async def promote(submission_id: str, store: DocumentStore = Depends(get_store)):
    vehicle_id, _ = promote_submission(store, submission_id)
    return CreatedResponse(id=vehicle_id)

# ----------------------------------------------------------------------
# Conversations
# ----------------------------------------------------------------------

@router.get("/conversations")
async def list_conversations(store: DocumentStore = Depends(get_store)):
    return conversations(store)

@router.get("/conversations/{user_id}", response_model=List[ChatMessage])
async def conversation(user_id: str, store: DocumentStore = Depends(get_store)):
    mark_thread_read(store, user_id, ADMIN_AUTHOR)
    return get_thread(store, user_id)

@router.post("/conversations/{user_id}/reply", response_model=CreatedResponse,
             status_code=status.HTTP_201_CREATED)
async def reply(user_id: str, body: ReplyRequest, store: DocumentStore = Depends(get_store)):
    try:
        return CreatedResponse(id=admin_reply(store, user_id, body.text))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

# ----------------------------------------------------------------------
# Live spare-part list
# ----------------------------------------------------------------------

@socket_router.websocket("/spare-parts/ws")
async def spare_parts_socket(websocket: WebSocket):
    container = get_container(websocket)
    token = websocket.query_params.get("token") or websocket.cookies.get(SESSION_COOKIE)
    session: Optional[SessionContext] = container.sessions.get(token)
    if session is None or not session.is_admin:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()

    def push(state):
        payload: Dict[str, Any] = {
            "items": [p.model_dump(mode="json") for p in state.items],
            "error": state.error,
        }
        loop.call_soon_threadsafe(updates.put_nowait, payload)

    feed = SparePartFeed(container.store, on_change=push).start()

    async def forward():
        while True:
            await websocket.send_json(await updates.get())

    forwarder = asyncio.create_task(forward())
    try:
        while True:
            # Client frames are ignored; the loop only waits for the disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"Spare-part socket closed for {session.user.uid}")
    finally:
        forwarder.cancel()
        feed.stop()
