import logging
import threading
import time
from typing import Callable, Optional

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from firebase_admin import auth

from farmhouse_backend.firebase_config import initialize_firebase
from orders.store import get_document_store

logger = logging.getLogger(__name__)

USERS_COLLECTION = 'users'


class OtpError(Exception):
    """The SMS gateway refused to send or verify an OTP."""


# --- OTP sessions ---

class OtpSessionStore:
    """
    Gateway session tokens keyed by mobile number, each kept for at most
    `ttl_seconds`. Expired entries are dropped on access, on every put()
    and by purge_expired().
    """

    def __init__(self, ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.OTP_SESSION_TTL_SECONDS
        self._clock = clock
        self._sessions = {}
        self._lock = threading.Lock()

    def put(self, mobile: str, session: str) -> None:
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            self._sessions[mobile] = (session, now + self.ttl_seconds)

    def get(self, mobile: str) -> Optional[str]:
        with self._lock:
            entry = self._sessions.get(mobile)
            if entry is None:
                return None
            session, expires_at = entry
            if self._clock() >= expires_at:
                del self._sessions[mobile]
                return None
            return session

    def pop(self, mobile: str) -> Optional[str]:
        session = self.get(mobile)
        with self._lock:
            self._sessions.pop(mobile, None)
        return session

    def purge_expired(self) -> int:
        with self._lock:
            return self._evict_expired(self._clock())

    def _evict_expired(self, now) -> int:
        # Caller holds the lock.
        expired = [mobile for mobile, (_, expires_at) in self._sessions.items() if now >= expires_at]
        for mobile in expired:
            del self._sessions[mobile]
        return len(expired)

    def __len__(self):
        with self._lock:
            return len(self._sessions)


_otp_sessions = None
_otp_sessions_lock = threading.Lock()


def get_otp_sessions() -> OtpSessionStore:
    global _otp_sessions
    with _otp_sessions_lock:
        if _otp_sessions is None:
            _otp_sessions = OtpSessionStore()
        return _otp_sessions


def reset_otp_sessions():
    global _otp_sessions
    with _otp_sessions_lock:
        _otp_sessions = None


# --- MSG91 Service ---

class Msg91Service:
    """
    A service class for the MSG91 OTP API.
    """
    timeout = 10

    def __init__(self):
        self.authkey = settings.MSG91_AUTHKEY
        self.template_id = settings.MSG91_TEMPLATE_ID
        self.base_url = settings.MSG91_API_BASE

        if not all([self.authkey, self.template_id, self.base_url]):
            raise ImproperlyConfigured("MSG91 settings are not configured properly.")

    def send_otp(self, mobile: str) -> str:
        """
        Asks MSG91 to text an OTP to `mobile` and returns the gateway session token.
        """
        response = requests.get(f"{self.base_url}/otp", params={
            "template_id": self.template_id,
            "mobile": mobile,
            "authkey": self.authkey,
        }, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()

        if data.get('type') != 'success':
            logger.error(f"MSG91 refused to send OTP to {mobile}: {data}")
            raise OtpError(data.get('message') or 'Failed to send OTP.')

        logger.info(f"OTP sent to {mobile}.")
        return data.get('session')

    def verify_otp(self, mobile: str, otp: str, session: str) -> None:
        """
        Checks `otp` against the gateway session. Raises OtpError if MSG91 rejects it.
        """
        response = requests.post(f"{self.base_url}/otp/verify", params={
            "otp": otp,
            "mobile": mobile,
            "authkey": self.authkey,
            "session": session,
        }, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()

        if data.get('type') != 'success':
            logger.warning(f"OTP verification failed for {mobile}: {data.get('message')}")
            raise OtpError(data.get('message') or 'Invalid OTP.')

        logger.info(f"OTP verified for {mobile}.")


# --- Admin claim ---

def grant_admin(email: str, store=None):
    """
    Sets the `admin` custom claim on the Firebase user with this email and
    flags their profile document. Returns the Firebase user record.
    """
    initialize_firebase()
    store = store or get_document_store()

    user = auth.get_user_by_email(email)
    claims = dict(user.custom_claims or {})
    claims['admin'] = True
    auth.set_custom_user_claims(user.uid, claims)

    store.set(USERS_COLLECTION, user.uid, {
        "email": user.email,
        "isAdmin": True,
    }, merge=True)
    logger.info(f"Granted admin claim to {email} ({user.uid}).")
    return user
