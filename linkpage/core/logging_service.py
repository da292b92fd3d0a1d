"""
Audit logging service for LinkPage.
Stores link changes, admin bootstrap and security events in sqlite so the
dashboard can show recent activity; always mirrors to the standard logger.
"""

import json
import logging
import os
import sqlite3
from datetime import datetime, timezone

from flask import request, has_request_context

logger = logging.getLogger('linkpage.audit')


class LoggingService:
    """Persistent audit log with request context"""

    def __init__(self, db_path=None):
        self.db_path = db_path
        if db_path:
            self._ensure_logs_table()

    def _ensure_logs_table(self):
        """Ensure the app_logs table exists"""
        try:
            db_dir = os.path.dirname(self.db_path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)

            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS app_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        timestamp TEXT NOT NULL,
                        level TEXT NOT NULL,
                        source TEXT NOT NULL,
                        message TEXT NOT NULL,
                        details TEXT,
                        ip_address TEXT,
                        user_agent TEXT,
                        request_path TEXT,
                        user_id TEXT
                    )
                """)
                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_logs_timestamp
                    ON app_logs(timestamp DESC)
                """)
                conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Failed to ensure logs table, audit log disabled: {e}")
            self.db_path = None

    @staticmethod
    def _get_request_context():
        """Extract request context information"""
        if not has_request_context():
            return None, None, None

        ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
        if ip_address and ',' in ip_address:
            ip_address = ip_address.split(',')[0].strip()

        return ip_address, request.headers.get('User-Agent', ''), request.path

    def log(self, level, source, message, details=None, user_id=None):
        """
        Log a message to the audit table and the standard logger

        Args:
            level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            source (str): Source component (links, admin, security)
            message (str): Main log message
            details (str/dict): Additional details (JSON-encoded if dict)
            user_id (str): Optional acting user identifier
        """
        level = level.upper()
        logger.log(getattr(logging, level, logging.INFO), f"[{source}] {message}")

        if not self.db_path:
            return

        if isinstance(details, dict):
            details = json.dumps(details, default=str)

        ip_address, user_agent, request_path = self._get_request_context()

        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO app_logs
                    (timestamp, level, source, message, details, ip_address, user_agent, request_path, user_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    datetime.now(timezone.utc).isoformat(), level, source, message, details,
                    ip_address, user_agent, request_path, user_id
                ))
                conn.commit()
        except sqlite3.Error as e:
            # Fallback to the console logger if the database write fails
            logger.error(f"Logging service error: {e}")
            if details:
                logger.error(f"Details: {details}")

    def info(self, source, message, details=None, user_id=None):
        self.log('INFO', source, message, details, user_id)

    def warning(self, source, message, details=None, user_id=None):
        self.log('WARNING', source, message, details, user_id)

    def error(self, source, message, details=None, user_id=None):
        self.log('ERROR', source, message, details, user_id)

    def log_user_action(self, source, action, user_id=None, details=None):
        """Log user actions (link created, admin bootstrapped, ...)"""
        self.info(source, f"User action: {action}", details, user_id)

    def log_security_event(self, message, details=None, user_id=None):
        """Log security-related events"""
        self.warning('security', message, details, user_id)

    def recent(self, limit=20):
        """Most recent entries, newest first"""
        if not self.db_path:
            return []

        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT timestamp, level, source, message, user_id
                    FROM app_logs
                    ORDER BY id DESC
                    LIMIT ?
                """, (limit,))
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Could not read audit log: {e}")
            return []
