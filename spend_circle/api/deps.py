from fastapi import Header, HTTPException

from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.services.auth.jwt_handler import get_current_user


def get_current_profile(access_token: str = Header(..., description="Access token (without Bearer)")) -> UserProfile:
    """Extract the acting user's profile from the JWT token"""
    if access_token.startswith("Bearer "):
        access_token = access_token.replace("Bearer ", "")
    profile = get_current_user(access_token)
    if not profile:
        raise HTTPException(status_code=401, detail="Invalid token")
    return profile
