"""
User profile and settings.

Settings are stored as an opaque JSON object. Updates merge shallowly per
top-level key: sending {"notifications": {...}} replaces the stored
notifications object and leaves privacy/preferences untouched.
"""

from typing import Dict, Optional

from sqlalchemy.orm import Session

from models import User

PROFILE_FIELDS = ("phone", "address", "bio", "sector", "aadhaar_last4", "photo_base64")


def profile_of(user: User) -> Dict:
    return {field: getattr(user, field) for field in PROFILE_FIELDS if getattr(user, field) is not None}


def serialize_user(user: User) -> Dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "profile": profile_of(user),
        "settings": user.settings or {},
        "withdrawn_points": user.withdrawn_points or 0,
        "created_at": user.created_at,
        "last_login_at": user.last_login_at,
        "last_active_at": user.last_active_at,
        "current_streak": user.current_streak or 0,
        "longest_streak": user.longest_streak or 0,
    }


def merge_settings(current: Optional[Dict], changes: Dict) -> Dict:
    """Shallow merge: each top-level key in changes replaces the stored value."""
    merged = dict(current or {})
    merged.update(changes)
    return merged


def update_profile(
    db: Session,
    user: User,
    name: Optional[str] = None,
    profile: Optional[Dict] = None,
    settings: Optional[Dict] = None,
) -> User:
    """
    Update the caller's name, profile fields and settings.

    Args:
        db: SQLAlchemy database session
        user: The authenticated user
        name: New display name, if given
        profile: Profile fields to overwrite (fields not sent are kept)
        settings: Top-level settings sections to replace
    """
    if isinstance(name, str):
        user.name = name
    if profile:
        for field, value in profile.items():
            if field in PROFILE_FIELDS:
                setattr(user, field, value)
    if settings:
        # Assign a new dict so the JSON column is flagged dirty
        user.settings = merge_settings(user.settings, settings)

    db.commit()
    db.refresh(user)
    return user
