from typing import Dict, Optional

import structlog
from firebase_admin import messaging, exceptions as firebase_exceptions
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import PushToken, User
from .firebase import get_firebase_app


logger = structlog.get_logger(__name__)


def push_enabled() -> bool:
    return settings.enable_firebase and settings.enable_notifications


def _is_dead_token(exc: Optional[Exception]) -> bool:
    return isinstance(exc, (messaging.UnregisteredError, firebase_exceptions.InvalidArgumentError))


def send_push(db: Session, user: User, title: str, body: str, data: Optional[Dict] = None) -> int:
    """
    Send a push notification to every registered device of a user.

    Tokens that FCM reports as unregistered or invalid are deleted.
    Delivery problems are logged, never raised.

    Returns:
        Number of devices the message was accepted for
    """
    if not push_enabled():
        return 0
    tokens = list(user.push_tokens)
    if not tokens:
        return 0

    message = messaging.MulticastMessage(
        tokens=[t.token for t in tokens],
        notification=messaging.Notification(title=title, body=body),
        data={k: str(v) for k, v in (data or {}).items()},
    )
    try:
        response = messaging.send_each_for_multicast(message, app=get_firebase_app())
    except (firebase_exceptions.FirebaseError, ValueError) as e:
        logger.warning("push_failed", user_id=str(user.id), error=str(e))
        return 0

    dead = [tokens[idx] for idx, resp in enumerate(response.responses) if not resp.success and _is_dead_token(resp.exception)]
    if dead:
        for token in dead:
            db.delete(token)
        db.commit()
        logger.info("push_tokens_pruned", user_id=str(user.id), count=len(dead))
    return response.success_count


def register_token(db: Session, user: User, token: str, platform: str = "web", max_tokens: int = 10) -> None:
    db.query(PushToken).filter(PushToken.user_id == user.id, PushToken.token == token).delete()
    db.flush()
    db.add(PushToken(user_id=user.id, token=token, platform=platform))
    db.flush()
    rows = (
        db.query(PushToken)
        .filter(PushToken.user_id == user.id)
        .order_by(PushToken.created_at.desc(), PushToken.id)
        .all()
    )
    for stale in rows[max_tokens:]:
        db.delete(stale)
    db.commit()
    db.refresh(user)


def remove_token(db: Session, user: User, token: str) -> int:
    count = db.query(PushToken).filter(PushToken.user_id == user.id, PushToken.token == token).delete()
    db.commit()
    return int(count)
