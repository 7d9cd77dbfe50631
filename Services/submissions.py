# Services/submissions.py
"""
Car submission pipeline (trade-in and "send us your car") and promotion of a
submission into the vehicle inventory.

One attempt walks ``IDLE -> UPLOADING -> VALIDATING -> WRITING_SUBMISSION ->
WRITING_MIRROR -> SUCCESS``; any step may end in ``ERROR``. Images are
uploaded one at a time, and the first failed upload aborts the attempt and
drops the URLs collected so far. The submission write and the mirror chat
message are two independent writes: if the second fails, the submission stays
recorded without its mirror message.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel

from schemas import COLLECTIONS, CarSubmission, Redirect, UserProfile, chat_path
from Services.auth import AuthService, AuthUser
from Services.document_store import DocumentStore, server_timestamp
from Services.errors import DocumentNotFound, StoreError, UploadError
from Services.i18n import Translator
from Services.object_storage import ObjectStorage

logger = logging.getLogger(__name__)

SOURCE_PAGES = {
    "trade-in": ("/trade-in", "trade-in"),
    "send-us-your-car": ("/send-us-your-car", "regular"),
}
UPLOAD_FOLDER = "car-submissions"
MIN_YEAR = 1900


class SubmissionState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    VALIDATING = "validating"
    WRITING_SUBMISSION = "writing_submission"
    WRITING_MIRROR = "writing_mirror"
    SUCCESS = "success"
    ERROR = "error"


class SubmissionForm(BaseModel):
    make: str = ""
    model: str = ""
    year: Union[str, int] = ""
    mileage: Union[str, int] = ""
    condition: str = ""
    vin: str = ""
    description: str = ""
    price: Union[str, float] = ""
    body: str = ""
    selected_car_id: str = ""


@dataclass
class ImageUpload:
    filename: str
    content: bytes


@dataclass
class SubmissionResult:
    state: SubmissionState
    submission_id: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    message: Optional[str] = None
    redirect: Optional[Redirect] = None

    @property
    def ok(self) -> bool:
        return self.state == SubmissionState.SUCCESS


def submission_type_for(source_page: str) -> str:
    """Derived from the entry point only, never from the form content."""
    if source_page not in SOURCE_PAGES:
        raise ValueError(f"Unknown source page: {source_page}")
    return SOURCE_PAGES[source_page][1]


def _parse_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def validate_submission(form: SubmissionForm, user_name: str, user_email: str, images: List[str]) -> List[str]:
    """Every problem with the attempt, in form order. Empty when the attempt may be written."""
    errors = []
    if not form.make.strip():
        errors.append("Car make is required")
    if not form.model.strip():
        errors.append("Car model is required")

    year = _parse_int(form.year)
    if year is None or not MIN_YEAR <= year <= datetime.now(timezone.utc).year + 1:
        errors.append("Valid car year is required")

    mileage = _parse_int(form.mileage)
    if mileage is None or mileage < 0:
        errors.append("Valid mileage is required")

    if not form.condition.strip():
        errors.append("Car condition is required")
    if not user_name:
        errors.append("User name is required")
    if not (user_email or "").strip():
        errors.append("User email is required")
    if not images:
        errors.append("At least one car image is required")
    return errors


def format_errors(errors: List[str], translator: Optional[Translator] = None) -> str:
    heading = (translator or Translator()).t("submission.errors.heading")
    return heading + "\n• " + "\n• ".join(errors)


def mirror_text(submission_type: str, year, make: str, model: str) -> str:
    if submission_type == "trade-in":
        return f"I've submitted my {year} {make} {model} for trade-in consideration."
    return f"I've submitted my {year} {make} {model} for your review."


class SubmissionPipeline:
    def __init__(self, store: DocumentStore, storage: ObjectStorage, auth: AuthService,
                 translator: Optional[Translator] = None):
        self.store = store
        self.storage = storage
        self.auth = auth
        self.translator = translator or Translator()
        self.state = SubmissionState.IDLE
        self.history: List[SubmissionState] = [self.state]

    def _enter(self, state: SubmissionState) -> None:
        self.state = state
        self.history.append(state)

    def _fail(self, message: str, **kwargs) -> SubmissionResult:
        self._enter(SubmissionState.ERROR)
        return SubmissionResult(SubmissionState.ERROR, message=message, **kwargs)

    def upload_images(self, images: List[ImageUpload]) -> List[str]:
        """Upload sequentially; the first failure aborts and raises."""
        urls = []
        for image in images:
            urls.append(self.storage.upload(image.filename, image.content, UPLOAD_FOLDER))
        return urls

    def submit(self, form: SubmissionForm, user: Optional[AuthUser], images: List[ImageUpload],
               source_page: str) -> SubmissionResult:
        path, submission_type = SOURCE_PAGES[source_page][0], submission_type_for(source_page)
        if user is None:
            return SubmissionResult(SubmissionState.IDLE, redirect=Redirect(
                redirect="/login", state={"from": path, "action": "submit-car"}))

        self._enter(SubmissionState.UPLOADING)
        try:
            urls = self.upload_images(images)
        except UploadError as e:
            logger.error(f"Error uploading images: {e}", exc_info=True)
            return self._fail(self.translator.t("submission.errors.upload"))

        self._enter(SubmissionState.VALIDATING)
        profile = self._profile(user.uid)
        user_name = self.auth.display_name(user, profile)
        errors = validate_submission(form, user_name, user.email, urls)
        if errors:
            logger.info(f"Submission from {user.uid} rejected: {'; '.join(errors)}")
            return self._fail(format_errors(errors, self.translator), errors=errors)

        submission = self._build(form, user, profile, user_name, urls, source_page, submission_type)

        self._enter(SubmissionState.WRITING_SUBMISSION)
        try:
            submission_id = self.store.add(
                COLLECTIONS["car_submissions"],
                {**submission.model_dump(exclude={"id", "created_at"}), "created_at": server_timestamp()},
            )
        except StoreError as e:
            logger.error(f"Error submitting form: {e}", exc_info=True)
            return self._fail(self.translator.t("submission.errors.submit"))
        logger.info(f"Recorded {submission_type} submission {submission_id} from {user.uid}")

        self._enter(SubmissionState.WRITING_MIRROR)
        try:
            self.store.add(chat_path(user.uid), {
                "text": mirror_text(submission_type, submission.year, submission.make, submission.model),
                "user_id": user.uid,
                "user_name": user_name,
                "read": False,
                "created_at": server_timestamp(),
            })
        except StoreError as e:
            logger.error(f"Submission {submission_id} recorded without mirror message: {e}", exc_info=True)
            return self._fail(self.translator.t("submission.errors.submit"), submission_id=submission_id)

        self._enter(SubmissionState.SUCCESS)
        return SubmissionResult(SubmissionState.SUCCESS, submission_id=submission_id,
                                redirect=Redirect(redirect="/chat"))

    def _profile(self, uid: str) -> Optional[UserProfile]:
        try:
            return self.auth.get_profile(uid)
        except StoreError as e:
            logger.error(f"Error fetching user profile: {e}", exc_info=True)
            return None

    @staticmethod
    def _build(form: SubmissionForm, user: AuthUser, profile: Optional[UserProfile], user_name: str,
               urls: List[str], source_page: str, submission_type: str) -> CarSubmission:
        price = form.price
        try:
            price = float(price) if price not in ("", None) else 0
        except (TypeError, ValueError):
            price = 0
        condition = form.condition.strip()
        return CarSubmission(
            user_id=user.uid,
            name=user_name,
            email=user.email,
            phone=(profile.phone if profile else None) or "",
            make=form.make.strip(),
            model=form.model.strip(),
            year=_parse_int(form.year),
            mileage=_parse_int(form.mileage),
            condition=condition,
            vin=form.vin.strip(),
            description=form.description.strip(),
            price=price,
            body=form.body.strip() or condition,
            images=urls,
            source_page=source_page,
            selected_car_id=form.selected_car_id,
            submission_type=submission_type,
        )


# ----------------------------------------------------------------------
# Promotion
# ----------------------------------------------------------------------

def promote_submission(store: DocumentStore, submission_id: str) -> Tuple[str, dict]:
    """Copy a car submission into the vehicle inventory. The submission is kept."""
    snapshot = store.get(COLLECTIONS["car_submissions"], submission_id)
    if snapshot is None:
        raise DocumentNotFound(COLLECTIONS["car_submissions"], submission_id)
    data = snapshot.data

    make = data.get("make") or data.get("car_make") or ""
    model = data.get("model") or data.get("car_model") or ""
    year = data.get("year") or data.get("car_year") or 0
    vehicle = {
        "name": f"{year} {make} {model}",
        "make": make,
        "model": model,
        "year": year,
        "mileage": data.get("mileage", 0),
        "body": data.get("body", ""),
        "transmission": data.get("transmission", ""),
        "engine": data.get("engine", ""),
        "exterior": data.get("exterior", ""),
        "interior": data.get("interior", ""),
        "vin": data.get("vin", ""),
        "description": data.get("description", ""),
        "images": data.get("images", []),
        "price": 0,
        "condition": "used",
        "sold": False,
        "is_trade_in": False,
        "features": [],
        "created_at": server_timestamp(),
    }
    vehicle_id = store.add(COLLECTIONS["vehicles"], vehicle)
    logger.info(f"Promoted submission {submission_id} to vehicle {vehicle_id}")
    return vehicle_id, vehicle
