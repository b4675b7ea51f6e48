import logging
import os

import firebase_admin
from django.core.exceptions import ImproperlyConfigured
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)


def _service_account_from_env():
    """
    Builds a service-account dict from the individual FIREBASE_* variables.
    Returns None when they are not set.
    """
    private_key = os.getenv("FIREBASE_PRIVATE_KEY")
    if not private_key:
        return None

    cred_dict = {
        "type": "service_account",
        "project_id": os.getenv("FIREBASE_PROJECT_ID"),
        "private_key_id": os.getenv("FIREBASE_PRIVATE_KEY_ID"),
        "private_key": private_key.replace('\\n', '\n'),
        "client_email": os.getenv("FIREBASE_CLIENT_EMAIL"),
        "client_id": os.getenv("FIREBASE_CLIENT_ID"),
        "auth_uri": os.getenv("FIREBASE_AUTH_URI", "https://accounts.google.com/o/oauth2/auth"),
        "token_uri": os.getenv("FIREBASE_TOKEN_URI", "https://oauth2.googleapis.com/token"),
    }
    if not all(cred_dict.values()):
        raise ImproperlyConfigured("One or more Firebase environment variables are not set.")
    return cred_dict


def initialize_firebase():
    """
    Initializes the Firebase Admin SDK once per process and returns the app.

    Credentials come from GOOGLE_APPLICATION_CREDENTIALS (a key file path) or,
    failing that, from the FIREBASE_* service-account variables.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    cred_path = os.getenv('GOOGLE_APPLICATION_CREDENTIALS')
    if cred_path:
        cred = credentials.Certificate(cred_path)
    else:
        cred_dict = _service_account_from_env()
        if cred_dict is None:
            raise ImproperlyConfigured(
                "Set GOOGLE_APPLICATION_CREDENTIALS or the FIREBASE_* variables to use Firebase."
            )
        cred = credentials.Certificate(cred_dict)

    app = firebase_admin.initialize_app(cred)
    logger.info("Firebase initialized successfully.")
    return app


def get_firestore_client():
    initialize_firebase()
    return firestore.client()
