# Services/chat_router.py
from fastapi import APIRouter, HTTPException, Depends, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel
from typing import List, Optional, Union
import asyncio
import json
import logging

from schemas import ChatMessage, ContactMessage, ItemContext, Redirect
from Services.auth import AuthService
from Services.chat import (
    ChatThread,
    ContactForm,
    get_thread,
    mark_thread_read,
    send_message,
    submit_contact,
    user_contact_messages,
)
from Services.dependencies import (
    SESSION_COOKIE,
    get_auth,
    get_container,
    get_session,
    get_store,
    get_translator,
    login_redirect,
)
from Services.document_store import DocumentStore
from Services.errors import StoreError
from Services.i18n import Translator
from Services.session_state import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter()

class ChatView(BaseModel):
    messages: List[ChatMessage]
    contact_messages: List[ContactMessage]
    unread_count: int

class SendRequest(BaseModel):
    text: str
    item: Optional[ItemContext] = None

class SentResponse(BaseModel):
    id: str

class ContactResponse(BaseModel):
    id: str
    message: str
    redirect: str = "/chat"

@router.get("/chat", response_model=Union[ChatView, Redirect])
async def open_chat(
    store: DocumentStore = Depends(get_store),
    session: Optional[SessionContext] = Depends(get_session)
):
    if session is None:
        return login_redirect("/chat", "chat")
    uid = session.user.uid
    mark_thread_read(store, uid, uid)
    return ChatView(
        messages=get_thread(store, uid),
        contact_messages=user_contact_messages(store, uid),
        unread_count=session.unread_count,
    )

@router.post("/chat", response_model=Union[SentResponse, Redirect], status_code=status.HTTP_201_CREATED)
async def post_message(
    body: SendRequest,
    store: DocumentStore = Depends(get_store),
    auth: AuthService = Depends(get_auth),
    session: Optional[SessionContext] = Depends(get_session)
):
    if session is None:
        return login_redirect("/chat", "chat")
    user = session.user
    name = auth.display_name(user, auth.get_profile(user.uid))
    try:
        message_id = send_message(store, user.uid, body.text, user.uid, name, body.item)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    return SentResponse(id=message_id)

@router.post("/contact", response_model=Union[ContactResponse, Redirect], status_code=status.HTTP_201_CREATED)
async def contact(
    form: ContactForm,
    store: DocumentStore = Depends(get_store),
    session: Optional[SessionContext] = Depends(get_session),
    translator: Translator = Depends(get_translator)
):
    if session is None:
        redirect = login_redirect("/contact", "contact")
        redirect.state["message"] = translator.t("contact.form.loginRequired")
        return redirect
    try:
        contact_id = submit_contact(store, session.user, form)
    except (StoreError, ValueError) as e:
        logger.error(f"Error sending contact message: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=translator.t("contact.form.error")
        )
    return ContactResponse(id=contact_id, message=translator.t("contact.form.success"))

@router.websocket("/chat/ws")
async def chat_socket(websocket: WebSocket):
    container = get_container(websocket)
    token = websocket.query_params.get("token") or websocket.cookies.get(SESSION_COOKIE)
    session = container.sessions.get(token)
    if session is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    uid = session.user.uid
    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()

    def push(messages: List[ChatMessage]):
        payload = [m.model_dump(mode="json") for m in messages]
        loop.call_soon_threadsafe(updates.put_nowait, payload)

    async def forward():
        while True:
            await websocket.send_json({"messages": await updates.get()})

    thread = ChatThread(container.store, uid, push).start()
    forwarder = asyncio.create_task(forward())
    try:
        while True:
            frame = await websocket.receive_text()
            try:
                # A bad frame is reported back; the socket stays open
                data = json.loads(frame)
                if not isinstance(data, dict):
                    raise ValueError("Expected a JSON object")
                item = ItemContext.model_validate(data["item"]) if data.get("item") else None
                name = container.auth.display_name(session.user, container.auth.get_profile(uid))
                send_message(container.store, uid, str(data.get("text") or ""), uid, name, item)
            except (ValueError, StoreError) as e:
                await websocket.send_json({"error": str(e)})
    except WebSocketDisconnect:
        logger.debug(f"Chat socket closed for {uid}")
    finally:
        forwarder.cancel()
        thread.stop()
