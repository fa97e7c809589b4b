"""
Authorization rules for the authenticated routes.

Every function takes the caller's token claims and enforces what that
caller may see or do; the routes in main.py only translate HTTP in and out.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app import storage
from app.auth import TokenClaims
from app.errors import ForbiddenError, InvalidInputError
from app.metrics import record_message_sent
from app.schemas import MessageCreatedResponse, MessageView, UserOut, UserSummary
from app.utils import mask_phone

logger = logging.getLogger(__name__)


def list_other_users(db: Session, current: TokenClaims) -> list[UserSummary]:
    """All users except the caller, newest first, with a masked phone for display."""
    users = storage.list_users_except(db, current.id)
    return [
        UserSummary(id=user.id, phone=user.phone, masked=mask_phone(user.phone))
        for user in users
    ]


def get_self(current: TokenClaims) -> UserOut:
    # Identity as of token issuance; the store is not consulted
    return UserOut(id=current.id, phone=current.phone)


def send_message(
    db: Session,
    current: TokenClaims,
    to_user: Optional[int],
    body: Optional[str],
    anonymous: Optional[bool] = False,
) -> MessageCreatedResponse:
    """
    Store a message from the caller to ``to_user``.

    The sender is always recorded as the caller; ``anonymous`` only affects
    what the recipient sees. The recipient id is not checked against the
    users table.

    Raises:
        InvalidInputError: to_user or body missing/empty
    """
    if not to_user or not body:
        raise InvalidInputError("to_user and body required")

    message = storage.create_message(
        db,
        from_user=current.id,
        to_user=to_user,
        body=body,
        anonymous=bool(anonymous),
    )
    record_message_sent(message.anonymous)
    return MessageCreatedResponse(id=message.id)


def list_messages_for(db: Session, current: TokenClaims, requested_user_id: int) -> list[MessageView]:
    """
    Inbox of ``requested_user_id``, newest first.

    Raises:
        ForbiddenError: the caller asked for someone else's inbox
    """
    if requested_user_id != current.id:
        logger.warning(f"User {current.id} denied access to inbox of user {requested_user_id}")
        raise ForbiddenError("forbidden")

    return [
        MessageView(
            id=message.id,
            from_user=None if message.anonymous else message.from_user,
            anonymous=bool(message.anonymous),
            body=message.body,
            created_at=message.created_at,
        )
        for message in storage.get_messages_for(db, requested_user_id)
    ]
