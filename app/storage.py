import logging
from datetime import datetime, timezone
from typing import Generator, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from app.config import settings
from app.errors import ConflictError, InternalError

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("users", "messages")

# check_same_thread=False is required for SQLite to work with FastAPI's threadpool
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def utc_timestamp() -> str:
    """Server time as ISO-8601 UTC with millisecond precision."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup; safe to run against an existing schema.
    """
    logger.debug(f"Initializing database with URL: {engine.url.render_as_string(hide_password=True)}")
    try:
        # Import models to register them with Base.metadata
        from app.models import User, Message  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and both tables exist, False otherwise.
    """
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        tables = set(inspect(engine).get_table_names())
        missing = [name for name in REQUIRED_TABLES if name not in tables]
        if missing:
            logger.error(f"Database schema not applied, missing tables: {missing}")
            return False
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Credential Store
# =============================================================================

def get_user_by_phone(db: Session, phone: str):
    """Return the user registered with ``phone``, or None."""
    from app.models import User

    return db.query(User).filter(User.phone == phone).first()


def get_user_by_id(db: Session, user_id: int):
    """Return the user with primary key ``user_id``, or None."""
    from app.models import User

    return db.get(User, user_id)


def create_user(db: Session, phone: str, password_hash: str):
    """
    Insert a new user row.

    The unique constraint on phone is the final arbiter: two concurrent
    signups for the same phone both pass the lookup, and the loser gets
    ConflictError here.

    Raises:
        ConflictError: phone is already registered
        InternalError: any other storage failure
    """
    from app.models import User

    user = User(phone=phone, password_hash=password_hash, created_at=utc_timestamp())
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        db.rollback()
        logger.info("Signup rejected by unique constraint on phone")
        raise ConflictError("phone already registered")
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Failed to create user: {e}")
        raise InternalError()

    logger.info(f"User created: id={user.id}")
    return user


def list_users_except(db: Session, user_id: int) -> list:
    """
    List every user other than ``user_id``, most recently created first.
    """
    from app.models import User

    return (
        db.query(User)
        .filter(User.id != user_id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )


# =============================================================================
# Message Store
# =============================================================================

def create_message(
    db: Session,
    from_user: Optional[int],
    to_user: int,
    body: str,
    anonymous: bool = False,
):
    """
    Insert a single message row.

    Args:
        db: Database session
        from_user: Sender id (stored even when anonymous)
        to_user: Recipient id
        body: Message text
        anonymous: Hide the sender from the recipient's view

    Returns:
        The persisted Message

    Raises:
        InternalError: the insert failed
    """
    from app.models import Message

    message = Message(
        from_user=from_user,
        to_user=to_user,
        anonymous=bool(anonymous),
        body=body,
        created_at=utc_timestamp(),
    )
    try:
        db.add(message)
        db.commit()
        db.refresh(message)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Failed to store message for user {to_user}: {e}")
        raise InternalError()

    logger.info(f"Message stored: id={message.id}, to={to_user}, anonymous={message.anonymous}")
    return message


def get_messages_for(db: Session, user_id: int) -> list:
    """
    Messages addressed to ``user_id``.

    Ordering: created_at DESC, id ASC (deterministic for equal timestamps)
    """
    from app.models import Message

    messages = (
        db.query(Message)
        .filter(Message.to_user == user_id)
        .order_by(Message.created_at.desc(), Message.id.asc())
        .all()
    )
    logger.debug(f"Retrieved {len(messages)} messages for user {user_id}")
    return messages
