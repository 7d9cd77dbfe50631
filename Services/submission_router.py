# Services/submission_router.py
from fastapi import APIRouter, HTTPException, Depends, File, Form, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import List, Optional, Union
import logging

from schemas import Redirect
from Services.auth import AuthService
from Services.dependencies import get_auth, get_session, get_storage, get_store, get_translator
from Services.document_store import DocumentStore
from Services.i18n import Translator
from Services.object_storage import ObjectStorage
from Services.session_state import SessionContext
from Services.submissions import (
    SOURCE_PAGES,
    ImageUpload,
    SubmissionForm,
    SubmissionPipeline,
    SubmissionState,
)

logger = logging.getLogger(__name__)

router = APIRouter()

class SubmissionResponse(BaseModel):
    submission_id: str
    state: SubmissionState
    redirect: str

@router.post("/{source_page}", response_model=Union[SubmissionResponse, Redirect],
             status_code=status.HTTP_201_CREATED)
async def submit_car(
    source_page: str,
    make: str = Form(""),
    model: str = Form(""),
    year: str = Form(""),
    mileage: str = Form(""),
    condition: str = Form(""),
    vin: str = Form(""),
    description: str = Form(""),
    price: str = Form(""),
    body: str = Form(""),
    selected_car_id: str = Form(""),
    images: List[UploadFile] = File(default=[]),
    store: DocumentStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_storage),
    auth: AuthService = Depends(get_auth),
    session: Optional[SessionContext] = Depends(get_session),
    translator: Translator = Depends(get_translator)
):
    if source_page not in SOURCE_PAGES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown submission page: {source_page}"
        )

    form = SubmissionForm(make=make, model=model, year=year, mileage=mileage, condition=condition,
                          vin=vin, description=description, price=price, body=body,
                          selected_car_id=selected_car_id)
    uploads = [ImageUpload(image.filename or "image", await image.read()) for image in images]

    pipeline = SubmissionPipeline(store, storage, auth, translator)
    result = pipeline.submit(form, session.user if session else None, uploads, source_page)

    if result.redirect is not None and not result.ok:
        return JSONResponse(status_code=status.HTTP_200_OK, content=result.redirect.model_dump())
    if result.errors:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": result.message, "errors": result.errors}
        )
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": result.message, "submission_id": result.submission_id}
        )
    return SubmissionResponse(submission_id=result.submission_id, state=result.state,
                              redirect=result.redirect.redirect)
