"""
Authentication Manager Module - QR Meeting Attendance

This module handles member authentication, authorization, and session discipline.

A member holds at most one valid token at a time. Logging in mints a signed,
time-bounded token and stores it in the member's session slot, so any token issued
earlier stops working even if it has not expired. A request presenting such a token
is rejected with ``SESSION_REPLACED`` rather than as an invalid token, so the client
can tell the member they were signed in elsewhere.

Features:
- Registration with email and password validation
- Password hashing with a configurable method and cost
- Token minting and verification
- Single active session per member
- Role-based access control
"""

from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Iterable
import logging
import secrets
import re

import jwt

from .errors import Rejection
from .session_store import SessionStore

ROLES = ('admin', 'pr', 'member')
EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def public_member(row: Dict[str, Any]) -> Dict[str, Any]:
    """Member fields that are safe to return to clients."""
    return {
        'id': row['id'],
        'name': row['name'],
        'email': row['email'],
        'role': row['role'],
        'created_at': row.get('created_at')
    }


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


class AuthManager:
    """
    Authentication and authorization for members.
    Handles registration, login, logout, and request authentication.
    """

    def __init__(self, database_manager, secret: str, algorithm: str = 'HS256',
                 token_expiry: timedelta = timedelta(days=7),
                 password_hash_method: str = 'pbkdf2:sha256:600000',
                 password_min_length: int = 6):
        """
        Initialize the authentication manager.

        Args:
            database_manager: Database manager instance
            secret (str): Token signing key
            algorithm (str): Token signing algorithm
            token_expiry (timedelta): Token lifetime
            password_hash_method (str): werkzeug hashing method, including its cost
            password_min_length (int): Minimum accepted password length
        """
        self.db = database_manager
        self.sessions = SessionStore(database_manager)
        self.logger = logging.getLogger(__name__)

        self.secret = secret
        self.algorithm = algorithm
        self.token_expiry = token_expiry
        self.password_hash_method = password_hash_method
        self.password_min_length = password_min_length

        self.logger.info("Authentication manager initialized")

    # Passwords

    def hash_password(self, password: str) -> str:
        return generate_password_hash(password, method=self.password_hash_method)

    def verify_password(self, password_hash: str, password: str) -> bool:
        return check_password_hash(password_hash, password)

    # Accounts

    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        """
        Self-registration. New accounts are always plain members.

        Returns:
            Dict[str, Any]: Registration result with the public member record
        """
        return self.create_member(name, email, password, role='member')

    def create_member(self, name: str, email: str, password: str,
                      role: str = 'member') -> Dict[str, Any]:
        """
        Create a member account.

        Args:
            name (str): Display name
            email (str): Email address, stored lower-cased
            password (str): Plaintext password, stored hashed
            role (str): One of admin, pr, member

        Returns:
            Dict[str, Any]: Creation result
        """
        name = (name or '').strip()
        email = normalize_email(email)

        validation_result = self._validate_member_data(name, email, password, role)
        if not validation_result['valid']:
            return Rejection.VALIDATION_ERROR.to_result(validation_result['error'])

        if self.find_member_by_email(email):
            return Rejection.CONFLICT.to_result('User already exists')

        try:
            member_id = self.db.execute_update(
                """INSERT INTO members (name, email, password_hash, role, created_at, updated_at)
                   VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)""",
                (name, email, self.hash_password(password), role)
            )
        except Exception as e:
            if 'UNIQUE' in str(e):
                return Rejection.CONFLICT.to_result('User already exists')
            self.logger.error(f"Member creation failed for {email}: {str(e)}")
            return Rejection.SYSTEM_ERROR.to_result('Failed to create member account')

        self.logger.info(f"Member created: {email} (ID: {member_id}, role: {role})")

        return {
            'success': True,
            'message': 'User registered successfully',
            'member': public_member(self.find_member_by_id(member_id))
        }

    def ensure_admin(self, name: str, email: Optional[str], password: Optional[str]) -> bool:
        """
        Seed an admin account when none exists.

        Returns:
            bool: True if an admin was created
        """
        if not email or not password:
            return False

        existing = self.db.execute_query(
            "SELECT COUNT(*) AS count FROM members WHERE role = 'admin'",
            fetch_all=False
        )
        if existing['count'] > 0:
            return False

        result = self.create_member(name, email, password, role='admin')
        if not result['success']:
            self.logger.error(f"Failed to seed admin account: {result['message']}")
            return False
        return True

    def find_member_by_id(self, member_id) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT * FROM members WHERE id = ?",
            (member_id,),
            fetch_all=False
        )

    def find_member_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT * FROM members WHERE email = ?",
            (normalize_email(email),),
            fetch_all=False
        )

    # Sessions

    def login(self, email: str, password: str, ip_address: Optional[str] = None) -> Dict[str, Any]:
        """
        Verify credentials and start a new session, replacing any previous one.

        Args:
            email (str): Email address
            password (str): Password
            ip_address (str): Address the login came from

        Returns:
            Dict[str, Any]: Login result with token and public member record
        """
        member = self.find_member_by_email(email) if email else None

        if not member or not password or not self.verify_password(member['password_hash'], password):
            self.logger.warning(f"Failed login attempt for {normalize_email(email)} from {ip_address}")
            return Rejection.INVALID_CREDENTIALS.to_result()

        token = self.issue_token(member)
        self.sessions.replace(member['id'], token, ip_address)

        self.logger.info(f"Member {member['email']} logged in from {ip_address}")

        return {
            'success': True,
            'message': 'Login successful',
            'token': token,
            'member': public_member(member)
        }

    def logout(self, member_id: int) -> Dict[str, Any]:
        self.sessions.clear(member_id)
        self.logger.info(f"Member {member_id} logged out")
        return {'success': True, 'message': 'Logged out successfully'}

    def issue_token(self, member: Dict[str, Any]) -> str:
        """Mint a signed token naming the member and their role."""
        now = datetime.now(timezone.utc)
        payload = {
            'id': member['id'],
            'role': member['role'],
            'iat': now,
            'exp': now + self.token_expiry,
            # Distinguishes tokens minted within the same second
            'jti': secrets.token_hex(8)
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def authenticate(self, token: Optional[str]) -> Dict[str, Any]:
        """
        Resolve a presented token to a member.

        Checks run in order: token present and valid, member exists, token is the
        one held in the member's session slot.

        Args:
            token (str): Bearer token from the request

        Returns:
            Dict[str, Any]: Result with the member row on success
        """
        if not token:
            return Rejection.UNAUTHENTICATED.to_result('Not authorized, no token')

        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            return Rejection.UNAUTHENTICATED.to_result('Token has expired')
        except jwt.InvalidTokenError:
            return Rejection.UNAUTHENTICATED.to_result()

        member = self.find_member_by_id(payload.get('id'))
        if not member:
            return Rejection.IDENTITY_NOT_FOUND.to_result()

        if member['active_token'] and member['active_token'] != token:
            self.logger.warning(f"Superseded token presented for member {member['id']}")
            return Rejection.SESSION_REPLACED.to_result()

        return {'success': True, 'member': member}

    def authorize(self, member: Dict[str, Any], allowed_roles: Iterable[str]) -> Dict[str, Any]:
        """Check the member's role against the roles allowed for an action."""
        if member['role'] not in allowed_roles:
            return Rejection.FORBIDDEN.to_result(f"Role ({member['role']}) not allowed")
        return {'success': True}

    # Validation

    def _validate_member_data(self, name: str, email: str, password: Optional[str],
                              role: str) -> Dict[str, Any]:
        if not name or not email or not password:
            return {'valid': False, 'error': 'All fields required'}

        if not re.match(EMAIL_PATTERN, email):
            return {'valid': False, 'error': 'Invalid email address format'}

        password_validation = self.validate_password(password)
        if not password_validation['valid']:
            return password_validation

        if role not in ROLES:
            return {'valid': False, 'error': f"Role must be one of: {', '.join(ROLES)}"}

        return {'valid': True}

    def validate_password(self, password: str) -> Dict[str, Any]:
        if len(password) < self.password_min_length:
            return {
                'valid': False,
                'error': f'Password must be at least {self.password_min_length} characters long'
            }
        return {'valid': True}
