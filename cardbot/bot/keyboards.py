"""Inline keyboard builders with compact callback data."""

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

# Callback data prefixes:
# c: connection action (connect/accept/decline) with the other user's id
# n: navigation (next/prev/requests/connections)


def kb_request_actions(requester_id: int) -> InlineKeyboardMarkup:
    """Accept/Decline buttons for one incoming request."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="✅ Accept", callback_data=f"c:accept|{requester_id}"),
                InlineKeyboardButton(text="❌ Decline", callback_data=f"c:decline|{requester_id}"),
            ]
        ]
    )


def kb_connect(user_id: int) -> InlineKeyboardMarkup:
    """Connect button shown under a viewed profile."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="🤝 Connect", callback_data=f"c:connect|{user_id}")]
        ]
    )


def kb_search_pages(has_prev: bool, has_next: bool) -> InlineKeyboardMarkup | None:
    """Prev/Next buttons for search results, None when there is only one page."""
    row = []
    if has_prev:
        row.append(InlineKeyboardButton(text="⬅️ Prev", callback_data="n:prev"))
    if has_next:
        row.append(InlineKeyboardButton(text="Next ➡️", callback_data="n:next"))
    if not row:
        return None
    return InlineKeyboardMarkup(inline_keyboard=[row])


def kb_view_requests() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="📬 View requests", callback_data="n:requests")]
        ]
    )


# Parsing utilities


def parse_callback(data: str) -> tuple[str, str, list[str]]:
    """Parse callback data into prefix, value, and extra params.

    Examples:
        "n:next" -> ("n", "next", [])
        "c:accept|42" -> ("c", "accept", ["42"])
    """
    if ":" not in data:
        return ("", data, [])

    prefix, rest = data.split(":", 1)
    parts = rest.split("|")
    value = parts[0]
    extra = parts[1:] if len(parts) > 1 else []

    return (prefix, value, extra)


def parse_user_id(extra: list[str]) -> int | None:
    """First extra param as a user id, or None if missing or malformed."""
    if not extra or not extra[0].isdigit():
        return None
    return int(extra[0])
