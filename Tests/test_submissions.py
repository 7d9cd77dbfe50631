# Tests/test_submissions.py
import pytest

from schemas import COLLECTIONS, chat_path
from Services.errors import StoreError, UploadError
from Services.submissions import (
    ImageUpload,
    SubmissionForm,
    SubmissionPipeline,
    SubmissionState,
    format_errors,
    promote_submission,
    submission_type_for,
    validate_submission,
)

IMAGE = ImageUpload("front.jpg", b"\xff\xd8jpeg-bytes")


def valid_form(**fields):
    data = {"make": "Toyota", "model": "Vitz", "year": "2015", "mileage": "85000", "condition": "Good"}
    data.update(fields)
    return SubmissionForm(**data)


@pytest.fixture
def pipeline(store, storage, auth):
    return SubmissionPipeline(store, storage, auth)


def test_validation_reports_every_problem():
    errors = validate_submission(valid_form(make="", mileage="-5"), "Abebe", "a@example.com", ["/x.jpg"])
    assert errors == ["Car make is required", "Valid mileage is required"]


def test_validation_requires_an_image():
    assert validate_submission(valid_form(), "Abebe", "a@example.com", []) == ["At least one car image is required"]


def test_validation_year_bounds():
    for year in ("1899", "3000", "abc", ""):
        assert "Valid car year is required" in validate_submission(valid_form(year=year), "A", "a@x.com", ["/x"])


def test_error_summary_is_bulleted():
    summary = format_errors(["Car make is required", "Valid mileage is required"])
    assert summary.endswith("\n• Car make is required\n• Valid mileage is required")


def test_type_comes_from_entry_point():
    assert submission_type_for("trade-in") == "trade-in"
    assert submission_type_for("send-us-your-car") == "regular"
    with pytest.raises(ValueError):
        submission_type_for("sell")


def test_anonymous_user_is_sent_to_login(pipeline, store):
    result = pipeline.submit(valid_form(), None, [IMAGE], "trade-in")
    assert result.redirect.redirect == "/login"
    assert result.redirect.state == {"from": "/trade-in", "action": "submit-car"}
    assert pipeline.history == [SubmissionState.IDLE]
    assert store.list_ids(COLLECTIONS["car_submissions"]) == []


def test_invalid_attempt_writes_nothing(pipeline, store, make_user):
    _, user = make_user()
    result = pipeline.submit(valid_form(make="", mileage="-5"), user, [IMAGE], "send-us-your-car")
    assert result.state == SubmissionState.ERROR
    assert result.errors == ["Car make is required", "Valid mileage is required"]
    assert store.list_ids(COLLECTIONS["car_submissions"]) == []
    assert store.list_ids(chat_path(user.uid)) == []


def test_zero_images_rejected(pipeline, make_user):
    _, user = make_user()
    result = pipeline.submit(valid_form(), user, [], "trade-in")
    assert result.errors == ["At least one car image is required"]


def test_trade_in_success_writes_submission_and_mirror(pipeline, store, make_user):
    _, user = make_user()
    result = pipeline.submit(valid_form(), user, [IMAGE, ImageUpload("back.jpg", b"more")], "trade-in")

    assert result.ok
    assert result.redirect.redirect == "/chat"
    assert pipeline.history == [
        SubmissionState.IDLE,
        SubmissionState.UPLOADING,
        SubmissionState.VALIDATING,
        SubmissionState.WRITING_SUBMISSION,
        SubmissionState.WRITING_MIRROR,
        SubmissionState.SUCCESS,
    ]

    submission = store.get(COLLECTIONS["car_submissions"], result.submission_id).data
    assert submission["submission_type"] == "trade-in"
    assert submission["source_page"] == "trade-in"
    assert submission["status"] == "pending"
    assert submission["name"] == "Abebe Kebede"
    assert submission["phone"] == "+251911000000"
    assert submission["body"] == "Good"
    assert len(submission["images"]) == 2

    messages = store.query(store.collection(chat_path(user.uid)))
    assert [m.data["text"] for m in messages] == [
        "I've submitted my 2015 Toyota Vitz for trade-in consideration."
    ]
    assert messages[0].data["read"] is False


def test_regular_mirror_text(pipeline, store, make_user):
    _, user = make_user()
    pipeline.submit(valid_form(), user, [IMAGE], "send-us-your-car")
    texts = [m.data["text"] for m in store.query(store.collection(chat_path(user.uid)))]
    assert texts == ["I've submitted my 2015 Toyota Vitz for your review."]


def test_upload_failure_aborts(pipeline, store, storage, make_user, monkeypatch):
    _, user = make_user()

    def fail(filename, content, folder):
        raise UploadError("bucket unavailable")
    monkeypatch.setattr(storage, "upload", fail)

    result = pipeline.submit(valid_form(), user, [IMAGE], "trade-in")
    assert result.state == SubmissionState.ERROR
    assert SubmissionState.VALIDATING not in pipeline.history
    assert store.list_ids(COLLECTIONS["car_submissions"]) == []


def test_mirror_failure_keeps_submission(pipeline, store, make_user, monkeypatch):
    _, user = make_user()
    original_add = store.add

    def add(path, data):
        if path == chat_path(user.uid):
            raise StoreError("chat write failed")
        return original_add(path, data)
    monkeypatch.setattr(store, "add", add)

    result = pipeline.submit(valid_form(), user, [IMAGE], "trade-in")
    assert result.state == SubmissionState.ERROR
    assert result.submission_id in store.list_ids(COLLECTIONS["car_submissions"])


def test_promotion_keeps_submission(pipeline, store, make_user):
    _, user = make_user()
    submission_id = pipeline.submit(valid_form(), user, [IMAGE], "send-us-your-car").submission_id

    vehicle_id, vehicle = promote_submission(store, submission_id)
    assert vehicle["name"] == "2015 Toyota Vitz"
    assert vehicle["price"] == 0
    assert vehicle["is_trade_in"] is False
    assert store.get(COLLECTIONS["vehicles"], vehicle_id) is not None
    assert store.get(COLLECTIONS["car_submissions"], submission_id) is not None
