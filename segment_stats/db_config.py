import threading
from functools import lru_cache

import firebase_admin
from firebase_admin import credentials
from firebase_admin import firestore

from segment_stats.models import settings

_init_lock = threading.Lock()


def _default_app():
    # A failed client creation leaves the app registered; reuse it on the next attempt.
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if settings.FIREBASE_CREDENTIALS_PATH:
        creds = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
    else:
        creds = credentials.ApplicationDefault()

    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
    return firebase_admin.initialize_app(creds, options)


@lru_cache
def get_db_client():
    """
    Initialize the default firebase app once and return its Firestore client.

    Uses the service account file from FIREBASE_CREDENTIALS_PATH when set,
    otherwise the application default credentials of the environment.
    """
    with _init_lock:
        return firestore.client(app=_default_app())
