"""Chore ledger: completion credit, undo, and assignee replacement.

A completion is keyed by (chore, user, date). Creating one when it already
exists returns the stored row untouched, so a user is credited at most once
per chore per day. Balances move only here, and always in the same
transaction as the completion row they account for.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .db import unit_of_work
from .errors import BadRequest, Forbidden, NotFound
from .helpers import can_user_complete_chore
from .models import Chore, ChoreAssignment, ChoreCompletion, User, utcnow

logger = logging.getLogger(__name__)


def get_chore(session: Session, chore_id: int) -> Chore:
    chore = session.get(Chore, chore_id)
    if not chore:
        raise NotFound("Chore not found")
    return chore


def find_completion(
    session: Session, chore_id: int, user_id: int, completion_date: date
) -> Optional[ChoreCompletion]:
    return session.exec(
        select(ChoreCompletion).where(
            ChoreCompletion.chore_id == chore_id,
            ChoreCompletion.user_id == user_id,
            ChoreCompletion.completion_date == completion_date,
        )
    ).first()


def complete_chore(
    session: Session, chore_id: int, user_id: int, completion_date: date
) -> ChoreCompletion:
    chore = get_chore(session, chore_id)
    assigned = [a.user_id for a in chore.assignments]
    if not can_user_complete_chore(assigned, user_id, chore.is_claimable):
        raise Forbidden("User is not assigned to this chore")
    user = session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    try:
        with unit_of_work(session):
            existing = find_completion(session, chore_id, user_id, completion_date)
            if existing:
                return existing
            completion = ChoreCompletion(
                chore_id=chore.id,
                user_id=user_id,
                completion_date=completion_date,
                points_earned=chore.points,
            )
            session.add(completion)
            user.points_balance = User.points_balance + chore.points
            session.add(user)
    except IntegrityError:
        # Another request stored the same completion first; the insert and
        # the increment were rolled back together.
        existing = find_completion(session, chore_id, user_id, completion_date)
        if existing is None:
            raise
        logger.info(
            "Chore %s already completed by user %s on %s", chore_id, user_id, completion_date
        )
        return existing
    session.refresh(completion)
    logger.info(
        "User %s completed chore %s on %s (+%d)",
        user_id,
        chore_id,
        completion_date,
        completion.points_earned,
    )
    return completion


def uncomplete_chore(
    session: Session, chore_id: int, user_id: int, completion_date: date
) -> None:
    completion = find_completion(session, chore_id, user_id, completion_date)
    if not completion:
        raise NotFound("Completion not found")
    points = completion.points_earned
    with unit_of_work(session):
        session.delete(completion)
        user = session.get(User, user_id)
        if user:
            user.points_balance = User.points_balance - points
            session.add(user)
    logger.info(
        "Undid completion of chore %s by user %s on %s (-%d)", chore_id, user_id, completion_date, points
    )


def replace_chore_assignments(session: Session, chore: Chore, user_ids: Iterable[int]) -> None:
    """Swap the chore's assignee set for ``user_ids``.

    Only stages the changes; the caller's unit of work commits them together
    with any other chore edits.
    """
    wanted = list(dict.fromkeys(user_ids))
    if wanted:
        known = set(session.exec(select(User.id).where(User.id.in_(wanted))).all())
        missing = [uid for uid in wanted if uid not in known]
        if missing:
            raise BadRequest(f"Unknown user id: {missing[0]}")
    for assignment in session.exec(
        select(ChoreAssignment).where(ChoreAssignment.chore_id == chore.id)
    ).all():
        session.delete(assignment)
    session.flush()
    for user_id in wanted:
        session.add(ChoreAssignment(chore_id=chore.id, user_id=user_id))
    chore.updated_at = utcnow()
    session.add(chore)
