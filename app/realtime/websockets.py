from datetime import datetime
from typing import Any, Dict, Optional
import logging
import socketio
from jose import jwt, JWTError
from pydantic import ValidationError
from sqlalchemy.orm import Session
from urllib.parse import parse_qs

from app.core.config import settings
from app.core.constants import STAFF_ROLES
from app.core.database import SessionLocal
from app.core.security import ALGORITHM
from app.crud.exam import exam as exam_crud
from app.crud.user import user as user_crud
from app.models.user import User
from app.schemas.token import TokenPayload
from app.utils.events import event_bus

logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")

# sid -> monitoring session of a connected proctor or admin
user_sessions: Dict[str, dict] = {}


def exam_room(exam_id: int) -> str:
    return f"exam:{exam_id}"


def token_from_handshake(environ: dict, auth: Optional[dict]) -> Optional[str]:
    if auth and auth.get('token'):
        return auth['token']
    query = parse_qs(environ.get('QUERY_STRING', ''))
    return query.get('token', [None])[0]


def authenticate_monitor(db: Session, token: str) -> Optional[User]:
    """Resolve a bearer token to an active staff user, or None."""
    try:
        payload = TokenPayload(**jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM]))
    except (JWTError, ValidationError):
        return None
    if payload.user_id is None:
        return None
    user = user_crud.get(db, id=payload.user_id)
    if not user or not user.is_active or user.role not in STAFF_ROLES:
        return None
    return user


async def broadcast_proctoring_event(data: Dict[str, Any]):
    await sio.emit('proctoring_event', data, room=exam_room(data['exam_id']))


async def broadcast_attempt_terminated(data: Dict[str, Any]):
    await sio.emit('attempt_terminated', data, room=exam_room(data['exam_id']))


def register_websocket_events(sio_server: socketio.AsyncServer):

    @sio_server.event
    async def connect(sid, environ, auth):
        token = token_from_handshake(environ, auth)
        if not token:
            logger.warning(f"Monitor connection {sid} rejected: no token")
            return False

        db = SessionLocal()
        try:
            user = authenticate_monitor(db, token)
        finally:
            db.close()
        if user is None:
            logger.warning(f"Monitor connection {sid} rejected: invalid token or not staff")
            return False

        user_sessions[sid] = {
            'user_id': user.id,
            'role': user.role.value,
            'connected_at': datetime.utcnow(),
            'exams': set()
        }
        await sio_server.save_session(sid, {'user_id': user.id})
        logger.info(f"Monitor {sid} connected (User: {user.id})")
        await sio_server.emit('connected', {'status': 'success', 'user_id': user.id}, room=sid)
        return True

    @sio_server.event
    async def disconnect(sid):
        session = user_sessions.pop(sid, {})
        for room in list(sio_server.rooms(sid)):
            if room != sid:
                await sio_server.leave_room(sid, room)
        logger.info(f"Monitor {sid} disconnected (User: {session.get('user_id')}, exams: {sorted(session.get('exams', ()))})")

    @sio_server.on('join_exam')
    async def handle_join_exam(sid, data):
        session = user_sessions.get(sid)
        if not session:
            await sio_server.emit('error', {'message': 'Not authenticated'}, room=sid)
            return

        exam_id = (data or {}).get('exam_id')
        if not isinstance(exam_id, int):
            await sio_server.emit('error', {'message': 'exam_id is required'}, room=sid)
            return

        db = SessionLocal()
        try:
            exists = exam_crud.get(db, id=exam_id) is not None
        finally:
            db.close()
        if not exists:
            await sio_server.emit('error', {'message': f'Exam {exam_id} not found'}, room=sid)
            return

        await sio_server.enter_room(sid, exam_room(exam_id))
        session['exams'].add(exam_id)
        logger.info(f"Monitor {sid} is monitoring exam {exam_id}")
        await sio_server.emit('joined_exam', {'exam_id': exam_id, 'status': 'success'}, room=sid)

    @sio_server.on('leave_exam')
    async def handle_leave_exam(sid, data):
        exam_id = (data or {}).get('exam_id')
        if exam_id is None:
            await sio_server.emit('error', {'message': 'exam_id is required'}, room=sid)
            return

        await sio_server.leave_room(sid, exam_room(exam_id))
        if sid in user_sessions:
            user_sessions[sid]['exams'].discard(exam_id)

        logger.info(f"Monitor {sid} stopped monitoring exam {exam_id}")
        await sio_server.emit('left_exam', {'exam_id': exam_id, 'status': 'success'}, room=sid)

    @sio_server.on('ping')
    async def handle_ping(sid, data):
        await sio_server.emit('pong', {
            'timestamp': datetime.utcnow().isoformat()
        }, room=sid)

    event_bus.subscribe("proctoring_event", broadcast_proctoring_event)
    event_bus.subscribe("attempt_terminated", broadcast_attempt_terminated)
