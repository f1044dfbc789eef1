"""Test system tag stripping on tag strings."""

import pytest

from tidyapkg.core.selection import SYSTEM_TAGS


@pytest.fixture
def tags(source_col):
    return source_col.tags


def test_strips_system_tags(tags):
    assert tags.rem_from_str(SYSTEM_TAGS, " french leech marked ") == " french "


def test_strip_is_case_insensitive(tags):
    assert tags.rem_from_str(SYSTEM_TAGS, " Marked other LEECH ") == " other "


def test_strip_is_idempotent(tags):
    once = tags.rem_from_str(SYSTEM_TAGS, " marked vocab leech grammar ")

    assert tags.rem_from_str(SYSTEM_TAGS, once) == once


def test_strip_keeps_other_tags(tags):
    result = tags.rem_from_str(SYSTEM_TAGS, " marked marked_for_review leeches verb ")

    assert tags.split(result) == ["marked_for_review", "leeches", "verb"]


def test_strip_everything_gives_empty_string(tags):
    assert tags.rem_from_str(SYSTEM_TAGS, " leech marked ") == ""
    assert tags.rem_from_str(SYSTEM_TAGS, "") == ""


def test_wildcard_removal(tags):
    assert tags.rem_from_str("lang::*", " lang::fr lang::de verb ") == " verb "


def test_ideographic_spaces_separate_tags(tags):
    assert tags.split("a　b c") == ["a", "b", "c"]
