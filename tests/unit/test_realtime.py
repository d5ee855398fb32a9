from datetime import timedelta

from app.core.constants import RoleEnum
from app.core.security import create_access_token
from app.realtime.websockets import authenticate_monitor, exam_room, token_from_handshake


def token_for(user, **overrides):
    data = {"user_id": user.id, "role": user.role.value}
    data.update(overrides)
    return create_access_token(data=data)

def test_token_is_read_from_auth_then_query_string():
    assert token_from_handshake({"QUERY_STRING": "token=from-query"}, {"token": "from-auth"}) == "from-auth"
    assert token_from_handshake({"QUERY_STRING": "token=from-query&x=1"}, None) == "from-query"
    assert token_from_handshake({}, {}) is None

def test_exam_room_name():
    assert exam_room(12) == "exam:12"

def test_staff_can_monitor(db_session, user_factory):
    proctor = user_factory(role=RoleEnum.PROCTOR)
    assert authenticate_monitor(db_session, token_for(proctor)).id == proctor.id

def test_students_and_inactive_staff_cannot_monitor(db_session, user_factory):
    student = user_factory()
    inactive = user_factory(role=RoleEnum.ADMIN, is_active=False)
    assert authenticate_monitor(db_session, token_for(student)) is None
    assert authenticate_monitor(db_session, token_for(inactive)) is None

def test_bad_or_expired_tokens_are_rejected(db_session, user_factory):
    admin = user_factory(role=RoleEnum.ADMIN)
    expired = create_access_token(data={"user_id": admin.id}, expires_delta=timedelta(minutes=-5))
    assert authenticate_monitor(db_session, expired) is None
    assert authenticate_monitor(db_session, "not-a-jwt") is None
    assert authenticate_monitor(db_session, token_for(admin, user_id=987654)) is None
