import jwt
import os
from typing import Optional

from pydantic import ValidationError as SchemaValidationError

from spend_circle.schemas.profile_schema import UserProfile

SECRET_KEY = os.getenv("SECRET_KEY", "your_secret_key")
ALGORITHM = "HS256"


def decode_access_token(token: str):
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def get_current_user(token: str) -> Optional[UserProfile]:
    """Build the acting user's profile from the JWT claims"""
    payload = decode_access_token(token)
    if not payload:
        return None

    uid = payload.get("user_id") or payload.get("uid")
    if not uid:
        return None
    try:
        return UserProfile(
            uid=str(uid),
            display_name=payload.get("display_name") or payload.get("username") or str(uid),
            email=payload.get("email", ""),
            photo_url=payload.get("photo_url"),
            username=payload.get("username"),
        )
    except SchemaValidationError:
        return None
