"""
Session Store Module - QR Meeting Attendance

Each member has a single session slot holding the one token currently valid for
them and the address that obtained it. Logging in replaces the slot, logging out
clears it. Both are single-row updates, so concurrent logins resolve to whichever
write lands last.
"""

import logging
from dataclasses import dataclass
from typing import Optional


@dataclass
class ActiveSession:
    """Contents of a member's session slot."""
    member_id: int
    token: str
    ip_address: Optional[str]


class SessionStore:
    """Reads and writes the active session slot on the members table."""

    def __init__(self, database_manager):
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def get(self, member_id: int) -> Optional[ActiveSession]:
        row = self.db.execute_query(
            "SELECT id, active_token, active_ip FROM members WHERE id = ?",
            (member_id,),
            fetch_all=False
        )
        if not row or not row['active_token']:
            return None
        return ActiveSession(row['id'], row['active_token'], row['active_ip'])

    def replace(self, member_id: int, token: str, ip_address: Optional[str]) -> bool:
        """Store a new session, invalidating whatever the slot held before."""
        affected_rows = self.db.execute_update(
            """UPDATE members SET active_token = ?, active_ip = ?, updated_at = CURRENT_TIMESTAMP
               WHERE id = ?""",
            (token, ip_address, member_id)
        )
        if affected_rows:
            self.logger.info(f"Session replaced for member {member_id} from {ip_address}")
        return affected_rows > 0

    def clear(self, member_id: int) -> bool:
        affected_rows = self.db.execute_update(
            """UPDATE members SET active_token = NULL, active_ip = NULL, updated_at = CURRENT_TIMESTAMP
               WHERE id = ?""",
            (member_id,)
        )
        return affected_rows > 0
