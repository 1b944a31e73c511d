# cascade.py — Ordered deletion plans for teams, boards, lists and cards
#
# Children go first, in a fixed order:
#   attachments → comments → card labels → cards → lists → labels
#   → board members → boards → team invitations → team members → team
# A plan is a list of named DELETE statements executed inside the caller's
# transaction; the caller commits once, or rolls everything back.

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from models import (
    Board, BoardList, BoardMember, Card, CardAttachment, CardComment,
    CardLabel, Label, Team, TeamInvitation, TeamMember,
)

logger = logging.getLogger("taskboard.cascade")

Step = Tuple[str, object]


@dataclass
class DeletionPlan:
    target: str
    card_ids: Select
    steps: List[Step] = field(default_factory=list)

    @property
    def step_names(self) -> List[str]:
        return [name for name, _ in self.steps]


@dataclass
class DeletionReport:
    target: str
    deleted: Dict[str, int] = field(default_factory=dict)
    stored_files: List[str] = field(default_factory=list)


def _card_steps(card_ids: Select) -> List[Step]:
    return [
        ("card_attachments", delete(CardAttachment).where(CardAttachment.card_id.in_(card_ids))),
        ("card_comments", delete(CardComment).where(CardComment.card_id.in_(card_ids))),
        ("card_labels", delete(CardLabel).where(CardLabel.card_id.in_(card_ids))),
        ("cards", delete(Card).where(Card.id.in_(card_ids))),
    ]


def _cards_of_boards(board_ids: Select) -> Select:
    list_ids = select(BoardList.id).where(BoardList.board_id.in_(board_ids))
    return select(Card.id).where(Card.list_id.in_(list_ids))


def _board_steps(board_ids: Select) -> List[Step]:
    list_ids = select(BoardList.id).where(BoardList.board_id.in_(board_ids))
    card_ids = select(Card.id).where(Card.list_id.in_(list_ids))
    label_ids = select(Label.id).where(Label.board_id.in_(board_ids))
    return _card_steps(card_ids) + [
        ("lists", delete(BoardList).where(BoardList.id.in_(list_ids))),
        # card labels of this board's labels that sit on cards elsewhere
        ("label_links", delete(CardLabel).where(CardLabel.label_id.in_(label_ids))),
        ("labels", delete(Label).where(Label.board_id.in_(board_ids))),
        ("board_members", delete(BoardMember).where(BoardMember.board_id.in_(board_ids))),
        ("boards", delete(Board).where(Board.id.in_(board_ids))),
    ]


def plan_card_deletion(card_id: str) -> DeletionPlan:
    card_ids = select(Card.id).where(Card.id == card_id)
    return DeletionPlan(f"card:{card_id}", card_ids, _card_steps(card_ids))


def plan_list_deletion(list_id: str) -> DeletionPlan:
    card_ids = select(Card.id).where(Card.list_id == list_id)
    steps = _card_steps(card_ids) + [
        ("lists", delete(BoardList).where(BoardList.id == list_id)),
    ]
    return DeletionPlan(f"list:{list_id}", card_ids, steps)


def plan_board_deletion(board_id: str) -> DeletionPlan:
    board_ids = select(Board.id).where(Board.id == board_id)
    return DeletionPlan(f"board:{board_id}", _cards_of_boards(board_ids), _board_steps(board_ids))


def plan_team_deletion(team_id: str) -> DeletionPlan:
    board_ids = select(Board.id).where(Board.team_id == team_id)
    steps = _board_steps(board_ids) + [
        ("team_invitations", delete(TeamInvitation).where(TeamInvitation.team_id == team_id)),
        ("team_members", delete(TeamMember).where(TeamMember.team_id == team_id)),
        ("teams", delete(Team).where(Team.id == team_id)),
    ]
    return DeletionPlan(f"team:{team_id}", _cards_of_boards(board_ids), steps)


async def execute_plan(db: AsyncSession, plan: DeletionPlan) -> DeletionReport:
    """Run every step in order. Does not commit."""
    report = DeletionReport(plan.target)

    # Stored file names must be read before the attachment rows go
    result = await db.execute(
        select(CardAttachment.stored_name).where(CardAttachment.card_id.in_(plan.card_ids))
    )
    report.stored_files = list(result.scalars().all())

    for name, statement in plan.steps:
        result = await db.execute(statement.execution_options(synchronize_session=False))
        report.deleted[name] = report.deleted.get(name, 0) + (result.rowcount or 0)

    logger.info(f"Cascade delete {plan.target}: {report.deleted}")
    return report
