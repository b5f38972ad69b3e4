"""Tests for search filter parsing and pagination state."""

from cardbot.core.contracts import Availability, ExperienceLevel, SearchFilters
from cardbot.core.search import (
    SearchSessions,
    normalize_query,
    parse_search_filters,
)


def test_parse_all_filters():
    filters = parse_search_filters(
        "industry:Technology skills:JavaScript,React location:New York "
        "experience:senior availability:full-time"
    )

    assert filters.industry == "Technology"
    assert filters.skills == ["JavaScript", "React"]
    assert filters.location == "New York"
    assert filters.experience is ExperienceLevel.SENIOR
    assert filters.availability is Availability.FULL_TIME


def test_location_at_end_of_input():
    filters = parse_search_filters("skills:Python location:Berlin Mitte")
    assert filters.location == "Berlin Mitte"
    assert filters.skills == ["Python"]


def test_unknown_enum_values_are_ignored():
    filters = parse_search_filters("experience:guru availability:sometimes")
    assert filters.experience is None
    assert filters.availability is None
    assert filters.is_empty()


def test_keys_are_case_insensitive():
    filters = parse_search_filters("INDUSTRY:Finance Experience:MID")
    assert filters.industry == "Finance"
    assert filters.experience is ExperienceLevel.MID


def test_plain_text_yields_empty_filters():
    assert parse_search_filters("python developer").is_empty()
    assert parse_search_filters("").is_empty()


def test_describe_and_terms():
    filters = SearchFilters(industry="Finance", skills=["SQL"], experience=ExperienceLevel.ENTRY)
    assert filters.describe() == ["Industry: Finance", "Skills: SQL", "Experience: entry"]
    assert filters.terms() == ["Finance", "SQL", "entry"]


def test_normalize_query():
    assert normalize_query("  python   dev ") == "python dev"
    assert normalize_query("a") is None
    assert normalize_query("ab") == "ab"
    assert normalize_query("x" * 101) is None


def test_search_sessions_paging(clock):
    sessions = SearchSessions(clock=clock)
    assert sessions.move(1, 1) is None

    sessions.begin_query(1, "python")
    assert sessions.move(1, 1).page == 1
    assert sessions.move(1, 1).page == 2
    assert sessions.move(1, -5).page == 0

    sessions.set_page(1, 3)
    state = sessions.get(1)
    assert state.page == 3
    assert state.offset(5) == 15
    assert state.query == "python"
    assert not state.advanced


def test_new_search_resets_page(clock):
    sessions = SearchSessions(clock=clock)
    sessions.begin_query(1, "python")
    sessions.move(1, 2)

    state = sessions.begin_filters(1, SearchFilters(industry="Design"))
    assert state.page == 0
    assert state.advanced
    assert state.query is None


def test_search_sessions_expire(clock):
    sessions = SearchSessions(clock=clock)
    sessions.begin_query(1, "python")
    clock.advance(20 * 60)
    sessions.move(1, 1)
    clock.advance(20 * 60)
    assert sessions.get(1) is not None

    clock.advance(31 * 60)
    assert sessions.cleanup() == 1
    assert sessions.get(1) is None
    assert len(sessions) == 0
