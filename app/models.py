"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from app.storage import Base


class User(Base):
    """
    Registered user.

    Table: users
    Unique: phone (enforced by the database, not only by the signup check)
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(String, nullable=False, index=True)  # Server time ISO-8601


class Message(Base):
    """
    Message addressed to a single recipient.

    Table: messages
    from_user is kept even for anonymous messages; the flag only hides it
    when the recipient reads their inbox.
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_user = Column(Integer, ForeignKey("users.id"), nullable=True)
    # Not a foreign key: any integer recipient is accepted
    to_user = Column(Integer, nullable=False, index=True)
    anonymous = Column(Boolean, nullable=False, default=False)
    body = Column(Text, nullable=False)
    created_at = Column(String, nullable=False, index=True)  # Server time ISO-8601
