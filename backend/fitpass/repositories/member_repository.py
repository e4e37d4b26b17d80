# backend/fitpass/repositories/member_repository.py
"""Repository for member credit balances."""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.club import Member
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class MemberRepository(BaseRepository[Member]):
    def __init__(self, db: Session):
        super().__init__(db, Member)

    def deduct_credits(self, member_id: str, amount: int) -> Optional[int]:
        """
        Subtract ``amount`` credits if the balance covers it.

        The balance check and decrement happen in one UPDATE. Returns the new
        balance, or None when the member has too few credits.
        """
        try:
            result = self.db.execute(
                update(Member)
                .where(Member.id == member_id, Member.credits >= amount)
                .values(credits=Member.credits - amount),
                execution_options={"synchronize_session": False},
            )
            if not getattr(result, "rowcount", 0):
                return None
            self.db.flush()
            member = self.get_by_id(member_id, load_relationships=False)
            if member is None:
                return None
            self.db.refresh(member)
            return member.credits
        except SQLAlchemyError as e:
            self.logger.error(f"Error deducting credits for member {member_id}: {str(e)}")
            raise RepositoryException(f"Failed to deduct credits: {str(e)}")
