"""
Learner Directory

Keeps the Supabase `users` table in sync with the learners that talk to
the tutor (id, first and last name, email).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class LearnerProfile:
    """Learner details sent by the client with each chat turn."""
    user_id: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.firstname or None

    def to_row(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "email": self.email,
        }


class UserProfileManager:
    """
    Stores learner rows in Supabase.

    Without a Supabase client nothing is stored; the session keeps the
    learner name it needs for the current conversation.
    """

    def __init__(self, supabase_client=None, table: str = "users"):
        """
        Initialize UserProfileManager.

        Args:
            supabase_client: Supabase client instance (optional)
            table: Learner table name
        """
        self.supabase = supabase_client
        self.use_supabase = supabase_client is not None
        self.table = table
        if not self.use_supabase:
            logger.warning("⚠️ [UserProfileManager] Supabase not available, learner rows will not be saved")

    async def upsert_learner(self, profile: LearnerProfile) -> bool:
        """
        Insert or update a learner row.

        Args:
            profile: Learner details

        Returns:
            True if the row was stored in Supabase
        """
        if not self.use_supabase:
            return False

        try:
            self.supabase.table(self.table).upsert(profile.to_row(), on_conflict="userId").execute()
            return True
        except Exception as e:
            logger.error(f"❌ [UserProfileManager] Error saving learner {profile.user_id[:20]}: {e}")
            return False
