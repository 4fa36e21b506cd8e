"""
Member Manager Module - QR Meeting Attendance

This module handles member administration for admins: listing, creating, updating
and deleting accounts, and role statistics. Account creation and password hashing
go through the authentication manager.
"""

from typing import Dict, List, Any, Optional
import logging
import re
import sqlite3

from .errors import Rejection
from .auth_manager import EMAIL_PATTERN, ROLES, normalize_email, public_member


class MemberManager:
    """
    Admin-side member management.
    """

    def __init__(self, database_manager, auth_manager):
        """
        Initialize the member manager.

        Args:
            database_manager: Database manager instance
            auth_manager: Authentication manager, for hashing and account creation
        """
        self.db = database_manager
        self.auth = auth_manager
        self.logger = logging.getLogger(__name__)

    def get_all_members(self) -> List[Dict[str, Any]]:
        """All members, newest first, without credentials."""
        rows = self.db.execute_query("SELECT * FROM members ORDER BY created_at DESC, id DESC")
        return [public_member(row) for row in rows]

    def get_member(self, member_id: int) -> Optional[Dict[str, Any]]:
        """A member with their attendance count, or None."""
        row = self.auth.find_member_by_id(member_id)
        if not row:
            return None

        count = self.db.execute_query(
            "SELECT COUNT(*) AS count FROM attendance WHERE member_id = ?",
            (member_id,),
            fetch_all=False
        )['count']

        return {'member': public_member(row), 'attendance_count': count}

    def create_member(self, member_data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a member with any role."""
        result = self.auth.create_member(
            member_data.get('name'),
            member_data.get('email'),
            member_data.get('password'),
            role=member_data.get('role') or 'member'
        )
        if result['success']:
            result['message'] = 'Member created'
        return result

    def update_member(self, member_id: int, update_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update name, email, role or password.

        Args:
            member_id (int): Member ID
            update_data (Dict[str, Any]): Fields to change

        Returns:
            Dict[str, Any]: Update result
        """
        member = self.auth.find_member_by_id(member_id)
        if not member:
            return Rejection.NOT_FOUND.to_result('Member not found')

        updates = {}

        if update_data.get('name'):
            updates['name'] = str(update_data['name']).strip()

        if update_data.get('email'):
            email = normalize_email(update_data['email'])
            if not re.match(EMAIL_PATTERN, email):
                return Rejection.VALIDATION_ERROR.to_result('Invalid email address format')
            updates['email'] = email

        if update_data.get('role'):
            if update_data['role'] not in ROLES:
                return Rejection.VALIDATION_ERROR.to_result(f"Role must be one of: {', '.join(ROLES)}")
            updates['role'] = update_data['role']

        if update_data.get('password'):
            password_validation = self.auth.validate_password(update_data['password'])
            if not password_validation['valid']:
                return Rejection.VALIDATION_ERROR.to_result(password_validation['error'])
            updates['password_hash'] = self.auth.hash_password(update_data['password'])

        if updates:
            assignments = ', '.join(f"{field} = ?" for field in updates)
            try:
                self.db.execute_update(
                    f"UPDATE members SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (*updates.values(), member_id)
                )
            except sqlite3.IntegrityError:
                return Rejection.CONFLICT.to_result('Email already in use')

            self.logger.info(f"Member {member_id} updated: {', '.join(updates)}")

        return {
            'success': True,
            'message': 'Member updated',
            'member': public_member(self.auth.find_member_by_id(member_id))
        }

    def delete_member(self, member_id: int, deleted_by: int) -> Dict[str, Any]:
        """
        Delete a member and their attendance records. Admins cannot delete themselves.
        """
        member = self.auth.find_member_by_id(member_id)
        if not member:
            return Rejection.NOT_FOUND.to_result('Member not found')

        if member['id'] == deleted_by:
            return Rejection.VALIDATION_ERROR.to_result('Cannot delete your own account')

        with self.db.transaction() as conn:
            conn.execute("DELETE FROM attendance WHERE member_id = ?", (member['id'],))
            conn.execute("DELETE FROM members WHERE id = ?", (member['id'],))

        self.logger.info(f"Member {member['id']} deleted by {deleted_by}")
        return {'success': True, 'message': 'Member deleted'}

    def get_member_stats(self) -> Dict[str, Any]:
        """Total members and the count per role."""
        by_role = self.db.execute_query(
            "SELECT role, COUNT(*) AS count FROM members GROUP BY role ORDER BY role"
        )
        return {
            'total_members': sum(row['count'] for row in by_role),
            'by_role': by_role
        }
