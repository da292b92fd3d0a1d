"""
Identity Providers
==================

Email/password account creation and sign-in. The hosted provider is
Firebase Authentication (Identity Toolkit REST API); the local provider keeps
accounts in sqlite for development and tests.

Both return an Identity, which is what the rest of LinkPage passes around
and what gets stored in the Flask session.
"""

import logging
import os
import re
import sqlite3
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import AuthError, StoreError

logger = logging.getLogger(__name__)

API_BASE = "https://identitytoolkit.googleapis.com/v1"

# Email validation regex, rejects consecutive dots and leading/trailing dots
EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9_%+-]+(\.[a-zA-Z0-9_%+-]+)*@[a-zA-Z0-9-]+(\.[a-zA-Z0-9-]+)*\.[a-zA-Z]{2,}$')

MIN_PASSWORD_LENGTH = 6

# Firebase error codes -> messages shown on the login form
FIREBASE_ERRORS = {
    'EMAIL_EXISTS': 'An account with this email already exists',
    'EMAIL_NOT_FOUND': 'Invalid email or password',
    'INVALID_PASSWORD': 'Invalid email or password',
    'INVALID_LOGIN_CREDENTIALS': 'Invalid email or password',
    'INVALID_EMAIL': 'Please enter a valid email address',
    'MISSING_PASSWORD': 'Please enter a password',
    'WEAK_PASSWORD': f'Password must be at least {MIN_PASSWORD_LENGTH} characters long',
    'USER_DISABLED': 'This account has been disabled',
    'TOO_MANY_ATTEMPTS_TRY_LATER': 'Too many attempts, please try again later',
    'OPERATION_NOT_ALLOWED': 'Email/password sign-in is not enabled for this project',
}


@dataclass(frozen=True)
class Identity:
    """An authenticated account"""

    uid: str
    email: Optional[str] = None
    id_token: Optional[str] = None
    email_verified: bool = False

    def to_session(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_session(cls, data: Optional[Dict[str, Any]]) -> Optional['Identity']:
        if not data or not data.get('uid'):
            return None
        return cls(
            uid=data['uid'],
            email=data.get('email'),
            id_token=data.get('id_token'),
            email_verified=bool(data.get('email_verified')),
        )


def _normalize_credentials(email, password):
    email = (email or '').strip().lower()
    password = password or ''
    if not email or not password:
        raise AuthError('Please enter both email and password')
    return email, password


class FirebaseIdentityProvider:
    """Firebase Authentication over the Identity Toolkit REST API"""

    name = 'firebase'

    def __init__(self, api_key: str, emulator_host: str = None, timeout: float = 10,
                 session: requests.Session = None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        if emulator_host:
            self.api_base = f"http://{emulator_host}/identitytoolkit.googleapis.com/v1"
        else:
            self.api_base = API_BASE

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_base}/{endpoint}"
        try:
            response = self.session.post(url, params={'key': self.api_key},
                                         json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Identity provider request {endpoint} failed: {e}")
            raise StoreError(f"Could not reach the identity provider: {e}")

        if response.status_code >= 400:
            try:
                message = response.json().get('error', {}).get('message', '')
            except ValueError:
                message = response.text
            code = (message or '').split(' : ')[0].strip()
            raise AuthError(FIREBASE_ERRORS.get(code, message or 'Authentication failed'))

        return response.json()

    def _identity(self, body: Dict[str, Any], email_verified: bool = False) -> Identity:
        return Identity(
            uid=body['localId'],
            email=body.get('email'),
            id_token=body.get('idToken'),
            email_verified=email_verified,
        )

    def sign_up(self, email: str, password: str) -> Identity:
        email, password = _normalize_credentials(email, password)
        body = self._post('accounts:signUp', {
            'email': email,
            'password': password,
            'returnSecureToken': True,
        })
        return self._identity(body)

    def sign_in(self, email: str, password: str) -> Identity:
        email, password = _normalize_credentials(email, password)
        body = self._post('accounts:signInWithPassword', {
            'email': email,
            'password': password,
            'returnSecureToken': True,
        })
        return self._identity(body, self.is_email_verified(body.get('idToken')))

    def is_email_verified(self, id_token: str) -> bool:
        """Look up the verified-email flag, which sign-in responses don't carry"""
        if not id_token:
            return False
        try:
            body = self._post('accounts:lookup', {'idToken': id_token})
        except AuthError as e:
            logger.warning(f"Account lookup failed: {e}")
            return False
        users = body.get('users') or [{}]
        return bool(users[0].get('emailVerified'))

    def ping(self) -> Dict[str, Any]:
        return {'provider': self.name}


class LocalIdentityProvider:
    """Email/password accounts stored in a local sqlite database"""

    name = 'local'

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.init_db()

    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        """Initialize the accounts table"""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS accounts (
                    uid TEXT PRIMARY KEY,
                    email TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    email_verified BOOLEAN DEFAULT 0,
                    created_at TEXT NOT NULL,
                    last_login TEXT
                )
            ''')
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_accounts_email ON accounts(email)")
            conn.commit()

    def sign_up(self, email: str, password: str) -> Identity:
        email, password = _normalize_credentials(email, password)
        if not EMAIL_REGEX.match(email):
            raise AuthError(FIREBASE_ERRORS['INVALID_EMAIL'])
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(FIREBASE_ERRORS['WEAK_PASSWORD'])

        uid = uuid.uuid4().hex
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute('''
                    INSERT INTO accounts (uid, email, password_hash, created_at)
                    VALUES (?, ?, ?, ?)
                ''', (uid, email, generate_password_hash(password),
                      datetime.now(timezone.utc).isoformat()))
                conn.commit()
        except sqlite3.IntegrityError:
            raise AuthError(FIREBASE_ERRORS['EMAIL_EXISTS'])

        logger.info(f"Created local account {email}")
        return Identity(uid=uid, email=email)

    def sign_in(self, email: str, password: str) -> Identity:
        email, password = _normalize_credentials(email, password)

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM accounts WHERE email = ?", (email,))
            row = cursor.fetchone()

            if not row or not check_password_hash(row['password_hash'], password):
                raise AuthError(FIREBASE_ERRORS['INVALID_LOGIN_CREDENTIALS'])

            cursor.execute("UPDATE accounts SET last_login = ? WHERE uid = ?",
                           (datetime.now(timezone.utc).isoformat(), row['uid']))
            conn.commit()

        return Identity(uid=row['uid'], email=row['email'],
                        email_verified=bool(row['email_verified']))

    def ping(self) -> Dict[str, Any]:
        return {'provider': self.name}
