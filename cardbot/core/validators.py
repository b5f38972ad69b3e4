"""Profile field validation and normalisation.

Each ``validate_*`` function takes raw user input and returns the value to
store, or raises :class:`ValidationError` with a user-facing message.
"""

import re
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from cardbot.core.contracts import ProfileData
from cardbot.core.errors import ValidationError

NAME_MAX = 50
TITLE_MAX = 100
DESCRIPTION_MAX = 300
GITHUB_MAX = 39
WORLD_ID_MAX = 255
FEEDBACK_MAX = 1000

GITHUB_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")
_WHITESPACE = re.compile(r"\s+")


def sanitize_input(text: str) -> str:
    """Trim and collapse internal whitespace runs to single spaces."""
    return _WHITESPACE.sub(" ", text.strip())


def format_url(url: str) -> str:
    """Prefix ``https://`` when the input carries no http(s) scheme."""
    if not url:
        return ""
    formatted = url.strip()
    if not formatted.startswith(("http://", "https://")):
        formatted = "https://" + formatted
    return formatted


def format_github_username(username: str) -> str:
    """Strip whitespace and a single leading ``@``."""
    if not username:
        return ""
    value = username.strip()
    return value[1:] if value.startswith("@") else value


def _required_text(field: str, label: str, text: str, max_length: int) -> str:
    value = sanitize_input(text or "")
    if not value:
        raise ValidationError(field, f"{label} cannot be empty")
    if len(value) > max_length:
        raise ValidationError(field, f"{label} must be {max_length} characters or less")
    return value


def validate_name(text: str) -> str:
    return _required_text("name", "Name", text, NAME_MAX)


def validate_title(text: str) -> str:
    return _required_text("title", "Title", text, TITLE_MAX)


def validate_description(text: str) -> str:
    return _required_text("description", "Description", text, DESCRIPTION_MAX)


def validate_github(text: str) -> str:
    value = format_github_username(text)
    if not value:
        return ""
    if not GITHUB_PATTERN.match(value):
        raise ValidationError(
            "github_username",
            "GitHub username can only contain letters, numbers, and hyphens",
        )
    if len(value) > GITHUB_MAX:
        raise ValidationError(
            "github_username", f"GitHub username must be {GITHUB_MAX} characters or less"
        )
    return value


def _parse_absolute_url(value: str) -> str | None:
    """Return the hostname of an absolute http(s) URL, or None if it isn't one."""
    if any(ch.isspace() for ch in value):
        return None
    try:
        parsed = urlparse(value)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return parsed.hostname


def validate_linkedin(text: str) -> str:
    if not text or not text.strip():
        return ""
    value = format_url(text)
    host = _parse_absolute_url(value)
    if not host or "linkedin.com" not in host:
        raise ValidationError("linkedin_url", "Please enter a valid LinkedIn URL")
    return value


def validate_website(text: str) -> str:
    if not text or not text.strip():
        return ""
    value = format_url(text)
    if not _parse_absolute_url(value):
        raise ValidationError("website_url", "Please enter a valid website URL")
    return value


def validate_world_id(text: str) -> str:
    value = (text or "").strip()
    if len(value) > WORLD_ID_MAX:
        raise ValidationError(
            "world_id", f"World ID must be {WORLD_ID_MAX} characters or less"
        )
    return value


class ProfilePayload(BaseModel):
    """Whole-profile schema checked once, when the draft is finalised."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=NAME_MAX)
    title: str = Field(min_length=1, max_length=TITLE_MAX)
    description: str = Field(min_length=1, max_length=DESCRIPTION_MAX)
    github_username: str = Field(default="", max_length=GITHUB_MAX, pattern=r"^[A-Za-z0-9-]*$")
    linkedin_url: str = ""
    website_url: str = ""
    world_id: str = Field(default="", max_length=WORLD_ID_MAX)


def validate_profile(data: dict) -> tuple[ProfileData | None, list[str]]:
    """Validate a complete profile mapping.

    Returns:
        ``(profile, [])`` on success, ``(None, errors)`` otherwise
    """
    try:
        payload = ProfilePayload.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        return None, errors

    return ProfileData(**payload.model_dump()), []


def validate_feedback(text: str) -> str:
    value = (text or "").strip()
    if not value:
        raise ValidationError("feedback", "Feedback cannot be empty")
    if len(value) > FEEDBACK_MAX:
        raise ValidationError(
            "feedback", f"Feedback must be {FEEDBACK_MAX} characters or less"
        )
    return value
