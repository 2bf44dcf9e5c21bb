"""
Usage Ledger

Tracks how many seconds of tutoring each learner has used per day, in the
Supabase `usage` table (one row per userId and date). Falls back to an
in-memory ledger when Supabase is not configured or a call fails.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def today() -> str:
    """Current UTC date as YYYY-MM-DD, the key used for daily quotas."""
    return datetime.now(timezone.utc).date().isoformat()


class UsageLedger:
    """
    Daily seconds-used counter per learner identity.
    """

    def __init__(self, supabase_client=None, table: str = "usage"):
        """
        Initialize UsageLedger.

        Args:
            supabase_client: Supabase client instance (optional)
            table: Usage table name
        """
        self.supabase = supabase_client
        self.use_supabase = supabase_client is not None
        self.table = table

        # Always initialize in-memory fallback (used in error cases)
        self._in_memory_usage: Dict[Tuple[str, str], int] = {}

        if not self.use_supabase:
            logger.warning("⚠️ [UsageLedger] Supabase not available, using in-memory ledger")

    async def get_seconds_used(self, identity: str, day: Optional[str] = None) -> int:
        """
        Seconds used by a learner on a day.

        Args:
            identity: External user id
            day: Date as YYYY-MM-DD (defaults to today)

        Returns:
            Seconds used, 0 when there is no row
        """
        day = day or today()
        if not self.use_supabase:
            return self._in_memory_usage.get((identity, day), 0)

        try:
            result = self.supabase.table(self.table) \
                .select('seconds') \
                .eq('userId', identity) \
                .eq('date', day) \
                .maybe_single() \
                .execute()

            if result is not None and result.data:
                return int(result.data.get("seconds") or 0)
            return 0
        except Exception as e:
            logger.error(f"❌ [UsageLedger] Error reading usage for {identity}: {e}")
            return self._in_memory_usage.get((identity, day), 0)

    async def add_seconds(
        self,
        identity: str,
        delta: int,
        day: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> int:
        """
        Add seconds to a learner's daily total.

        Args:
            identity: External user id
            delta: Seconds to add
            day: Date as YYYY-MM-DD (defaults to today)
            ip: Originating address, stored alongside the row when known

        Returns:
            New total for the day
        """
        day = day or today()
        previous = await self.get_seconds_used(identity, day)
        new_total = previous + delta

        if not self.use_supabase:
            self._in_memory_usage[(identity, day)] = new_total
            return new_total

        row = {"userId": identity, "date": day, "seconds": new_total}
        if ip:
            row["ip"] = ip

        try:
            self.supabase.table(self.table).upsert(row, on_conflict="userId,date").execute()
            logger.debug(f"⏱️ [UsageLedger] {identity} used {new_total}s on {day}")
        except Exception as e:
            logger.error(f"❌ [UsageLedger] Error saving usage for {identity}: {e}")
            # Fallback: keep in memory
            self._in_memory_usage[(identity, day)] = new_total
        return new_total
