from typing import Optional

import firebase_admin
from firebase_admin import auth, credentials

from ..config import settings


_app: Optional[firebase_admin.App] = None


def get_firebase_app() -> firebase_admin.App:
    global _app
    if _app is None:
        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "client_email": settings.firebase_client_email,
            # .env files carry the PEM with literal \n sequences
            "private_key": (settings.firebase_private_key or "").replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        })
        _app = firebase_admin.initialize_app(cred)
    return _app


def verify_id_token(id_token: str) -> dict:
    return auth.verify_id_token(id_token, app=get_firebase_app())
