# backend/fitpass/repositories/club_repository.py
"""Repository for clubs (payout recipients)."""

import logging
from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.club import Club
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ClubRepository(BaseRepository[Club]):
    def __init__(self, db: Session):
        super().__init__(db, Club)

    def get_by_ids(self, club_ids: Iterable[str]) -> Dict[str, Club]:
        """Map of club id to club for the ids that exist."""
        ids = list(dict.fromkeys(club_ids))
        if not ids:
            return {}
        try:
            clubs = self.db.execute(select(Club).where(Club.id.in_(ids))).scalars().all()
            return {club.id: club for club in clubs}
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading clubs: {str(e)}")
            raise RepositoryException(f"Failed to load clubs: {str(e)}")
