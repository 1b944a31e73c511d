# projections.py — Response shapes for list views and detail views
#
# List views (GET /teams, GET /boards) are cached per user and stay light:
# no nested lists, cards or members. Detail views carry the full tree.
# Callers must eager-load the relationships each projection walks.

from typing import List, Optional

from pydantic import BaseModel

from models import (
    Board, BoardList, BoardMember, Card, CardAttachment, CardComment, Label,
    Team, TeamInvitation, User,
)
from ordering import sort_by_position
import permissions


def _ts(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def _role(role) -> Optional[str]:
    return role.name.lower() if role is not None else None


def _name(user: Optional[User]) -> Optional[str]:
    return user.display_name if user is not None else None


# ============================================================
# SCHEMAS
# ============================================================

class MemberOut(BaseModel):
    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: str
    is_active: bool
    joined_at: Optional[str] = None


class TeamSummaryOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    owner_id: str
    owner_name: Optional[str] = None
    role: Optional[str] = None
    member_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TeamDetailOut(TeamSummaryOut):
    members: List[MemberOut] = []


class InvitationOut(BaseModel):
    id: str
    email: str
    team_id: str
    team_name: Optional[str] = None
    invited_by_user_id: str
    created_at: Optional[str] = None
    expires_at: Optional[str] = None
    is_accepted: bool
    accepted_at: Optional[str] = None


class LabelOut(BaseModel):
    id: str
    name: str
    color: str
    board_id: str


class CommentOut(BaseModel):
    id: str
    content: str
    card_id: str
    user_id: str
    user_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AttachmentOut(BaseModel):
    id: str
    file_name: str
    content_type: str
    file_size: int
    card_id: str
    uploaded_by_id: str
    created_at: Optional[str] = None


class CardSummaryOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    position: int
    priority: str
    due_date: Optional[str] = None
    is_archived: bool
    list_id: str
    created_by_id: str
    assigned_to_id: Optional[str] = None
    assigned_to_name: Optional[str] = None
    labels: List[LabelOut] = []
    comment_count: int = 0
    attachment_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CardDetailOut(CardSummaryOut):
    board_id: Optional[str] = None
    created_by_name: Optional[str] = None
    comments: List[CommentOut] = []
    attachments: List[AttachmentOut] = []


class ListOut(BaseModel):
    id: str
    title: str
    position: int
    is_archived: bool
    board_id: str
    cards: List[CardSummaryOut] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BoardSummaryOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    color: str
    is_archived: bool
    owner_id: str
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    role: Optional[str] = None
    member_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BoardDetailOut(BoardSummaryOut):
    can_manage: bool = False
    lists: List[ListOut] = []
    labels: List[LabelOut] = []
    members: List[MemberOut] = []


# ============================================================
# MEMBERS & INVITATIONS
# ============================================================

def member_out(member) -> MemberOut:
    """TeamMember or BoardMember, with .user loaded"""
    return MemberOut(
        user_id=member.user_id,
        email=member.user.email if member.user is not None else None,
        display_name=_name(member.user),
        role=_role(member.role),
        is_active=bool(member.is_active),
        joined_at=_ts(member.joined_at),
    )


def invitation_out(invitation: TeamInvitation, team_name: Optional[str] = None) -> InvitationOut:
    return InvitationOut(
        id=invitation.id,
        email=invitation.email,
        team_id=invitation.team_id,
        team_name=team_name,
        invited_by_user_id=invitation.invited_by_user_id,
        created_at=_ts(invitation.created_at),
        expires_at=_ts(invitation.expires_at),
        is_accepted=bool(invitation.is_accepted),
        accepted_at=_ts(invitation.accepted_at),
    )


# ============================================================
# TEAMS
# ============================================================

def team_summary(team: Team, user_id: str) -> TeamSummaryOut:
    """Needs team.owner and team.members"""
    member = permissions.team_membership(team, user_id)
    if member is not None:
        role = _role(member.role)
    else:
        role = "owner" if permissions.is_team_owner(team, user_id) else None
    return TeamSummaryOut(
        id=team.id,
        name=team.name,
        description=team.description,
        owner_id=team.owner_id,
        owner_name=_name(team.owner),
        role=role,
        member_count=sum(1 for m in team.members if m.is_active),
        created_at=_ts(team.created_at),
        updated_at=_ts(team.updated_at),
    )


def team_detail(team: Team, user_id: str) -> TeamDetailOut:
    """Needs team.owner and team.members with .user"""
    summary = team_summary(team, user_id)
    members = sorted(team.members, key=lambda m: -int(m.role))
    return TeamDetailOut(**summary.model_dump(), members=[member_out(m) for m in members])


# ============================================================
# CARDS
# ============================================================

def label_out(label: Label) -> LabelOut:
    return LabelOut(id=label.id, name=label.name, color=label.color, board_id=label.board_id)


def comment_out(comment: CardComment) -> CommentOut:
    return CommentOut(
        id=comment.id,
        content=comment.content,
        card_id=comment.card_id,
        user_id=comment.user_id,
        user_name=_name(comment.user),
        created_at=_ts(comment.created_at),
        updated_at=_ts(comment.updated_at),
    )


def attachment_out(attachment: CardAttachment) -> AttachmentOut:
    return AttachmentOut(
        id=attachment.id,
        file_name=attachment.file_name,
        content_type=attachment.content_type,
        file_size=attachment.file_size or 0,
        card_id=attachment.card_id,
        uploaded_by_id=attachment.uploaded_by_id,
        created_at=_ts(attachment.created_at),
    )


def card_summary(card: Card) -> CardSummaryOut:
    """Needs card.assigned_to, card.card_labels.label, card.comments, card.attachments"""
    return CardSummaryOut(
        id=card.id,
        title=card.title,
        description=card.description,
        position=card.position,
        priority=card.priority.value if card.priority is not None else "medium",
        due_date=_ts(card.due_date),
        is_archived=bool(card.is_archived),
        list_id=card.list_id,
        created_by_id=card.created_by_id,
        assigned_to_id=card.assigned_to_id,
        assigned_to_name=_name(card.assigned_to),
        labels=[label_out(cl.label) for cl in card.card_labels if cl.label is not None],
        comment_count=len(card.comments),
        attachment_count=len(card.attachments),
        created_at=_ts(card.created_at),
        updated_at=_ts(card.updated_at),
    )


def card_detail(card: Card) -> CardDetailOut:
    """card_summary plus card.list, card.created_by, comment authors"""
    comments = sorted(card.comments, key=lambda c: (_ts(c.created_at) or "", c.id), reverse=True)
    attachments = sorted(card.attachments, key=lambda a: _ts(a.created_at) or "")
    return CardDetailOut(
        **card_summary(card).model_dump(),
        board_id=card.list.board_id if card.list is not None else None,
        created_by_name=_name(card.created_by),
        comments=[comment_out(c) for c in comments],
        attachments=[attachment_out(a) for a in attachments],
    )


def list_out(board_list: BoardList, include_cards: bool = True) -> ListOut:
    cards = [card_summary(c) for c in sort_by_position(board_list.cards)] if include_cards else []
    return ListOut(
        id=board_list.id,
        title=board_list.title,
        position=board_list.position,
        is_archived=bool(board_list.is_archived),
        board_id=board_list.board_id,
        cards=cards,
        created_at=_ts(board_list.created_at),
        updated_at=_ts(board_list.updated_at),
    )


# ============================================================
# BOARDS
# ============================================================

def board_summary(board: Board, user_id: str) -> BoardSummaryOut:
    """Needs board.members and board.team"""
    return BoardSummaryOut(
        id=board.id,
        title=board.title,
        description=board.description,
        color=board.color,
        is_archived=bool(board.is_archived),
        owner_id=board.owner_id,
        team_id=board.team_id,
        team_name=board.team.name if board.team is not None else None,
        role=_role(permissions.board_role(board, user_id)),
        member_count=sum(1 for m in board.members if m.is_active),
        created_at=_ts(board.created_at),
        updated_at=_ts(board.updated_at),
    )


def board_detail(board: Board, user_id: str) -> BoardDetailOut:
    """Needs the full tree: lists → cards (see card_summary), labels, members.user, team.members"""
    members: List[BoardMember] = sorted(board.members, key=lambda m: -int(m.role))
    return BoardDetailOut(
        **board_summary(board, user_id).model_dump(),
        can_manage=permissions.can_manage_board(board, user_id),
        lists=[list_out(bl) for bl in sort_by_position(board.lists)],
        labels=[label_out(lb) for lb in sorted(board.labels, key=lambda lb: lb.name.lower())],
        members=[member_out(m) for m in members],
    )
