# Tests/test_session_state.py
import pytest

from schemas import COLLECTIONS, ItemContext, chat_path
from Services.chat import (
    ADMIN_AUTHOR,
    ChatThread,
    ContactForm,
    admin_reply,
    get_thread,
    mark_thread_read,
    send_message,
    submit_contact,
    user_contact_messages,
)
from Services.errors import AuthError
from Services.session_state import SessionRegistry


@pytest.fixture
def sessions(container):
    return container.sessions


def test_unread_badge_counts_only_other_authors(sessions, store, make_user):
    token, user = make_user()
    context = sessions.get(token)
    counts = []
    context.add_unread_listener(counts.append)

    send_message(store, user.uid, "Hello", user.uid, "Abebe")
    assert context.unread_count == 0

    admin_reply(store, user.uid, "Hi, how can we help?")
    admin_reply(store, user.uid, "The car is available.")
    assert context.unread_count == 2

    mark_thread_read(store, user.uid, user.uid)
    assert context.unread_count == 0
    # one delivery per write: the two read flags flip one at a time
    assert counts == [0, 0, 1, 2, 1, 0]


def test_mark_thread_read_skips_own_messages(store):
    send_message(store, "u1", "mine", "u1", "Abebe")
    admin_reply(store, "u1", "reply")

    assert mark_thread_read(store, "u1", "u1") == 1
    own = [m for m in get_thread(store, "u1") if m.user_id == "u1"]
    assert not own[0].read
    assert mark_thread_read(store, "u1", ADMIN_AUTHOR) == 1


def test_thread_is_oldest_first_with_item_context(store):
    send_message(store, "u1", "About this car", "u1", "Abebe",
                 ItemContext(vehicle_id="v1", vehicle_name="2020 Toyota Corolla", vehicle_price=1000000))
    admin_reply(store, "u1", "Sure")

    messages = get_thread(store, "u1")
    assert [m.text for m in messages] == ["About this car", "Sure"]
    assert messages[0].vehicle_name == "2020 Toyota Corolla"
    assert messages[1].user_name == "Admin"


def test_empty_message_rejected(store):
    with pytest.raises(ValueError):
        send_message(store, "u1", "   ", "u1", "Abebe")


def test_live_thread(store):
    seen = []
    with ChatThread(store, "u1", on_change=lambda messages: seen.append(len(messages))):
        admin_reply(store, "u1", "Welcome")
        assert store.active_subscriptions == 1
    admin_reply(store, "u1", "Still there?")
    assert seen == [0, 1]
    assert store.active_subscriptions == 0


def test_contact_form_mirrors_into_chat(store, make_user):
    _, user = make_user()
    form = ContactForm(name="Abebe Kebede", email="buyer@example.com", message="Do you finance?")
    contact_id = submit_contact(store, user, form)

    assert store.get(COLLECTIONS["contact_messages"], contact_id).data["user_id"] == user.uid
    assert [m.text for m in get_thread(store, user.uid)] == ["Do you finance?"]
    assert [c.id for c in user_contact_messages(store, user.uid)] == [contact_id]


def test_sign_out_discards_context(sessions, auth, store, make_user):
    token, _ = make_user()
    context = sessions.get(token)
    assert len(sessions) == 1
    assert store.active_subscriptions == 1

    auth.sign_out(token)
    assert context.closed
    assert len(sessions) == 0
    assert store.active_subscriptions == 0
    assert sessions.get(token) is None


def test_context_is_reused_per_token(sessions, make_user):
    token, _ = make_user()
    assert sessions.get(token) is sessions.get(token)
    assert sessions.get(None) is None
    assert sessions.get("bogus") is None


def test_registry_close_tears_down_everything(store, auth, make_user):
    registry = SessionRegistry(store, auth)
    token, _ = make_user()
    registry.get(token)
    registry.close()
    assert len(registry) == 0
    assert store.active_subscriptions == 0


def test_admin_flag(sessions, make_user):
    token, _ = make_user("staff@example.com", admin=True)
    assert sessions.get(token).is_admin
    token, _ = make_user("buyer@example.com")
    assert not sessions.get(token).is_admin


def test_saved_reconciler_bound_to_session_user(sessions, make_user, add_vehicle):
    token, user = make_user()
    vehicle_id = add_vehicle()
    saved = sessions.get(token).saved("saved_vehicles")
    assert saved.user_id == user.uid
    assert saved.toggle(vehicle_id)
    assert sessions.get(token).saved("saved_vehicles") is saved


def test_duplicate_registration_and_bad_password(auth, make_user):
    make_user()
    with pytest.raises(AuthError):
        auth.sign_up("buyer@example.com", "another1")
    with pytest.raises(AuthError):
        auth.sign_in("buyer@example.com", "wrong-password")
    with pytest.raises(AuthError):
        auth.sign_up("new@example.com", "123")


def test_display_name_fallbacks(auth, make_user):
    _, user = make_user(first_name="", last_name="")
    assert auth.display_name(user, auth.get_profile(user.uid)) == "buyer"
