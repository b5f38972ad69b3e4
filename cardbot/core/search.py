"""Search query parsing and per-user pagination state."""

import re
import time
from dataclasses import dataclass, replace

from cardbot.core.contracts import Availability, ExperienceLevel, SearchFilters
from cardbot.core.ttl_store import Clock, TTLStore
from cardbot.core.validators import sanitize_input

PAGE_SIZE = 5
QUERY_MIN = 2
QUERY_MAX = 100
STATE_TTL_SECONDS = 30 * 60

INDUSTRIES = (
    "Technology",
    "Healthcare",
    "Finance",
    "Education",
    "Marketing",
    "Sales",
    "Design",
    "Engineering",
    "Consulting",
    "Non-profit",
)

SKILLS = (
    "JavaScript",
    "Python",
    "React",
    "Node.js",
    "SQL",
    "AWS",
    "Machine Learning",
    "Data Analysis",
    "Project Management",
    "UI/UX Design",
)

_INDUSTRY = re.compile(r"industry:(\w+)", re.IGNORECASE)
_SKILLS = re.compile(r"skills:([^,\s]+(?:,[^,\s]+)*)", re.IGNORECASE)
# Location may span several words but stops before the next "key:" token
_LOCATION = re.compile(r"location:(.+?)(?=\s+\w+:|$)", re.IGNORECASE)
_EXPERIENCE = re.compile(r"experience:(entry|mid|senior|executive)\b", re.IGNORECASE)
_AVAILABILITY = re.compile(
    r"availability:(full-time|part-time|contract|freelance)\b", re.IGNORECASE
)


def parse_search_filters(query: str) -> SearchFilters:
    """Extract ``key:value`` filters from free text.

    Unrecognised text is ignored; an input with no filters yields an empty
    :class:`SearchFilters` (see :meth:`SearchFilters.is_empty`).

    Examples:
        >>> parse_search_filters("industry:Technology skills:Python,SQL").skills
        ['Python', 'SQL']
    """
    filters = SearchFilters()

    match = _INDUSTRY.search(query)
    if match:
        filters.industry = match.group(1)

    match = _SKILLS.search(query)
    if match:
        filters.skills = [s.strip() for s in match.group(1).split(",") if s.strip()]

    match = _LOCATION.search(query)
    if match and match.group(1).strip():
        filters.location = match.group(1).strip()

    match = _EXPERIENCE.search(query)
    if match:
        filters.experience = ExperienceLevel(match.group(1).lower())

    match = _AVAILABILITY.search(query)
    if match:
        filters.availability = Availability(match.group(1).lower())

    return filters


def normalize_query(text: str) -> str | None:
    """Return the sanitized search query, or None if it is too short or too long."""
    query = sanitize_input(text or "")
    if len(query) < QUERY_MIN or len(query) > QUERY_MAX:
        return None
    return query


@dataclass(frozen=True)
class SearchState:
    """What a user last searched for and which page they are on.

    Exactly one of ``query`` and ``filters`` is set.
    """

    page: int = 0
    query: str | None = None
    filters: SearchFilters | None = None

    @property
    def advanced(self) -> bool:
        return self.filters is not None

    def offset(self, page_size: int) -> int:
        return self.page * page_size


class SearchSessions:
    """Per-user search pagination state with a sliding expiry."""

    def __init__(self, ttl_seconds: float = STATE_TTL_SECONDS, clock: Clock = time.time) -> None:
        self._store: TTLStore[int, SearchState] = TTLStore(
            default_ttl=ttl_seconds,
            clock=clock,
            name="search_sessions",
        )

    def begin_query(self, user_id: int, query: str) -> SearchState:
        state = SearchState(page=0, query=query)
        self._store.set(user_id, state)
        return state

    def begin_filters(self, user_id: int, filters: SearchFilters) -> SearchState:
        state = SearchState(page=0, filters=filters)
        self._store.set(user_id, state)
        return state

    def get(self, user_id: int) -> SearchState | None:
        return self._store.get(user_id)

    def move(self, user_id: int, delta: int) -> SearchState | None:
        """Shift the page by ``delta``, clamped at 0. None when there is no search."""
        with self._store.locked():
            state = self._store.get(user_id)
            if state is None:
                return None
            moved = replace(state, page=max(0, state.page + delta))
            self._store.set(user_id, moved)
            return moved

    def set_page(self, user_id: int, page: int) -> None:
        with self._store.locked():
            state = self._store.get(user_id)
            if state is not None:
                self._store.set(user_id, replace(state, page=max(0, page)))

    def clear(self, user_id: int) -> bool:
        return self._store.delete(user_id)

    def cleanup(self) -> int:
        return self._store.sweep()

    def __len__(self) -> int:
        return len(self._store)
