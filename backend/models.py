# models.py — Database models for the team task board
# - UUID string primary keys everywhere
# - Ordered integer roles for teams and boards (Member < Admin < Owner)
# - Integer positions for lists within a board and cards within a list
# - No storage-level cascades: deletions run through cascade.py

import uuid
from datetime import datetime, timezone
from enum import IntEnum, Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, Boolean, Integer, BigInteger,
    Enum as SQLEnum, ForeignKey, Text, Index, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


def as_utc(dt):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# ============================================================
# ENUMS
# ============================================================

class TeamRole(IntEnum):
    MEMBER = 0
    ADMIN = 1
    OWNER = 2


class BoardRole(IntEnum):
    MEMBER = 0
    ADMIN = 1
    OWNER = 2


class CardPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ============================================================
# USERS
# ============================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    first_name = Column(String, nullable=False, default="")
    last_name = Column(String, nullable=False, default="")
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    email_confirmed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.email


# ============================================================
# TEAMS
# ============================================================

class Team(Base):
    __tablename__ = "teams"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = relationship("User", foreign_keys=[owner_id])
    members = relationship("TeamMember", back_populates="team")
    boards = relationship("Board", back_populates="team")
    invitations = relationship("TeamInvitation", back_populates="team")


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    team_id = Column(String, ForeignKey("teams.id"), nullable=False)
    role = Column(SQLEnum(TeamRole), nullable=False, default=TeamRole.MEMBER)
    is_active = Column(Boolean, default=True, nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow)

    team = relationship("Team", back_populates="members")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("user_id", "team_id", name="uq_team_member_user_team"),
        Index("idx_team_member_user", "user_id"),
    )


class TeamInvitation(Base):
    __tablename__ = "team_invitations"

    id = Column(String, primary_key=True, default=new_uuid)
    email = Column(String, nullable=False)
    team_id = Column(String, ForeignKey("teams.id"), nullable=False)
    invited_by_user_id = Column(String, ForeignKey("users.id"), nullable=False)
    token = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_accepted = Column(Boolean, default=False, nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    team = relationship("Team", back_populates="invitations")
    invited_by = relationship("User", foreign_keys=[invited_by_user_id])

    __table_args__ = (
        UniqueConstraint("email", "team_id", name="uq_invitation_email_team"),
    )

    def is_valid(self, now: datetime = None) -> bool:
        now = now or utcnow()
        return not self.is_accepted and now <= as_utc(self.expires_at)


# ============================================================
# BOARDS
# ============================================================

class Board(Base):
    __tablename__ = "boards"

    id = Column(String, primary_key=True, default=new_uuid)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String, nullable=False, default="#0079bf")
    is_archived = Column(Boolean, default=False, nullable=False)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    team_id = Column(String, ForeignKey("teams.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = relationship("User", foreign_keys=[owner_id])
    team = relationship("Team", back_populates="boards")
    members = relationship("BoardMember", back_populates="board")
    lists = relationship("BoardList", back_populates="board")
    labels = relationship("Label", back_populates="board")


class BoardMember(Base):
    __tablename__ = "board_members"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    board_id = Column(String, ForeignKey("boards.id"), nullable=False)
    role = Column(SQLEnum(BoardRole), nullable=False, default=BoardRole.MEMBER)
    is_active = Column(Boolean, default=True, nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow)

    board = relationship("Board", back_populates="members")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("user_id", "board_id", name="uq_board_member_user_board"),
        Index("idx_board_member_user", "user_id"),
    )


class BoardList(Base):
    """Ordered column of cards within a board"""
    __tablename__ = "lists"

    id = Column(String, primary_key=True, default=new_uuid)
    title = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    is_archived = Column(Boolean, default=False, nullable=False)
    board_id = Column(String, ForeignKey("boards.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    board = relationship("Board", back_populates="lists")
    cards = relationship("Card", back_populates="list")

    __table_args__ = (
        Index("idx_list_board_position", "board_id", "position"),
    )


class Card(Base):
    __tablename__ = "cards"

    id = Column(String, primary_key=True, default=new_uuid)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    priority = Column(SQLEnum(CardPriority), nullable=False, default=CardPriority.MEDIUM)
    due_date = Column(DateTime(timezone=True), nullable=True)
    is_archived = Column(Boolean, default=False, nullable=False)
    list_id = Column(String, ForeignKey("lists.id"), nullable=False)
    created_by_id = Column(String, ForeignKey("users.id"), nullable=False)
    assigned_to_id = Column(String, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    list = relationship("BoardList", back_populates="cards")
    created_by = relationship("User", foreign_keys=[created_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    comments = relationship("CardComment", back_populates="card")
    attachments = relationship("CardAttachment", back_populates="card")
    card_labels = relationship("CardLabel", back_populates="card")

    __table_args__ = (
        Index("idx_card_list_position", "list_id", "position"),
    )


class CardComment(Base):
    __tablename__ = "card_comments"

    id = Column(String, primary_key=True, default=new_uuid)
    content = Column(Text, nullable=False)
    card_id = Column(String, ForeignKey("cards.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    card = relationship("Card", back_populates="comments")
    user = relationship("User")


class CardAttachment(Base):
    __tablename__ = "card_attachments"

    id = Column(String, primary_key=True, default=new_uuid)
    file_name = Column(String, nullable=False)
    stored_name = Column(String, nullable=False, unique=True)
    content_type = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    card_id = Column(String, ForeignKey("cards.id"), nullable=False, index=True)
    uploaded_by_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    card = relationship("Card", back_populates="attachments")
    uploaded_by = relationship("User")


class Label(Base):
    __tablename__ = "labels"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    color = Column(String, nullable=False, default="#61bd4f")
    board_id = Column(String, ForeignKey("boards.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    board = relationship("Board", back_populates="labels")


class CardLabel(Base):
    __tablename__ = "card_labels"

    id = Column(String, primary_key=True, default=new_uuid)
    card_id = Column(String, ForeignKey("cards.id"), nullable=False)
    label_id = Column(String, ForeignKey("labels.id"), nullable=False)

    card = relationship("Card", back_populates="card_labels")
    label = relationship("Label")

    __table_args__ = (
        UniqueConstraint("card_id", "label_id", name="uq_card_label"),
    )
