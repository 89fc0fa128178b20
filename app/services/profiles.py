"""Profile collaborator for the auth flows: creation at registration, lookup, deletion."""

import re
import unicodedata

from sqlalchemy.orm import Session

from app.models import Profile

DEFAULT_SLUG = "profile"
DEFAULT_HEADLINE = "Member"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str | None) -> str:
    """ASCII-fold, lowercase and hyphenate; blank or symbol-only input becomes 'profile'."""
    if not value or not value.strip():
        return DEFAULT_SLUG
    folded = unicodedata.normalize("NFD", value)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    slug = _NON_ALNUM.sub("-", folded.lower()).strip("-")
    return slug or DEFAULT_SLUG


def normalize_slug(value: str | None) -> str | None:
    """Slugify a user-requested slug; None when nothing was requested."""
    if not value or not value.strip():
        return None
    return slugify(value)


def trim_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


class ProfileService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_slug(self, slug: str) -> Profile | None:
        return self.session.query(Profile).filter(Profile.slug == slug).first()

    def find_by_user_id(self, user_id: int) -> Profile | None:
        return self.session.query(Profile).filter(Profile.user_id == user_id).first()

    def slug_taken(self, slug: str) -> bool:
        return self.find_by_slug(slug) is not None

    def generate_slug(self, base: str | None) -> str:
        """Slugify `base` and append -1, -2, ... until unused."""
        root = slugify(base)
        candidate = root
        suffix = 1
        while self.slug_taken(candidate):
            candidate = f"{root}-{suffix}"
            suffix += 1
        return candidate

    def create_for_user(
        self,
        user_id: int,
        slug: str | None,
        display_name: str,
        **fields: str | None,
    ) -> Profile:
        """
        Create the user's profile. `slug` must already be normalized and checked;
        when None, a unique slug is generated from the display name.
        Extra keyword fields (headline, bio, photo_url, ...) are trimmed; blanks are stored as NULL.
        """
        profile = Profile(
            user_id=user_id,
            slug=slug or self.generate_slug(display_name),
            name=display_name,
            headline=DEFAULT_HEADLINE,
        )
        for name, value in fields.items():
            value = trim_to_none(value)
            if name == "headline" and value is None:
                continue
            setattr(profile, name, value)
        self.session.add(profile)
        self.session.flush()
        return profile

    def delete_for_user(self, user_id: int) -> bool:
        profile = self.find_by_user_id(user_id)
        if profile is None:
            return False
        self.session.delete(profile)
        self.session.flush()
        return True
