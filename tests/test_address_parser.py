"""Tests for address_parser: the rule cascade, suffix normalization and
the composite/legacy address fields."""

import pytest

from address_parser import (
    ADDRESS_RULES,
    AddressComponents,
    build_full_address,
    build_full_street_address,
    build_unparsed_address,
    legacy_address_aliases,
    match_rule,
    normalize_street_suffix,
    parse_street_address,
)


# ============================================================================
# normalize_street_suffix
# ============================================================================

class TestNormalizeStreetSuffix:
    @pytest.mark.parametrize("token,expected", [
        ("street", "St"),
        ("Avenue", "Ave"),
        ("BOULEVARD", "Blvd"),
        ("drive", "Dr"),
        ("lane", "Ln"),
        ("road", "Rd"),
        ("court", "Ct"),
        ("place", "Pl"),
        ("way", "Way"),
        ("circle", "Cir"),
        ("parkway", "Pkwy"),
        ("terrace", "Ter"),
        ("loop", "Loop"),
    ])
    def test_known_long_forms(self, token, expected):
        assert normalize_street_suffix(token) == expected

    def test_trailing_dot_stripped(self):
        assert normalize_street_suffix("St.") == "St"

    def test_unknown_token_capitalized(self):
        assert normalize_street_suffix("hwy") == "Hwy"

    def test_empty(self):
        assert normalize_street_suffix("") == ""
        assert normalize_street_suffix(None) == ""


# ============================================================================
# Rule cascade
# ============================================================================

class TestRuleOrder:
    def test_rule_names_in_order(self):
        assert [r.name for r in ADDRESS_RULES] == ["directional", "suffixed", "catch_all"]

    def test_directional_wins_over_suffixed(self):
        rule, _ = match_rule("123 N Main Street E")
        assert rule == "directional"

    def test_catch_all_when_no_suffix(self):
        rule, components = match_rule("42 Rehoboth Beach Boardwalk Unit")
        assert rule == "catch_all"
        assert components.street_number == "42"
        assert components.street_name == "Rehoboth Beach Boardwalk Unit"

    def test_no_match_without_number(self):
        rule, components = match_rule("Main Street")
        assert rule is None
        assert components.is_empty()


class TestParseStreetAddress:
    def test_full_directional(self):
        c = parse_street_address("123 N Main Street E")
        assert c == AddressComponents(
            street_number="123",
            street_dir_prefix="N",
            street_name="Main",
            street_suffix="St",
            street_dir_suffix="E",
        )

    def test_simple_suffixed(self):
        c = parse_street_address("456 Oak Avenue")
        assert c.street_number == "456"
        assert c.street_dir_prefix is None
        assert c.street_name == "Oak"
        assert c.street_suffix == "Ave"
        assert c.street_dir_suffix is None

    def test_two_letter_direction(self):
        c = parse_street_address("9 NE Harbor Rd")
        assert c.street_dir_prefix == "NE"
        assert c.street_name == "Harbor"
        assert c.street_suffix == "Rd"

    def test_leading_letter_of_name_is_not_a_direction(self):
        c = parse_street_address("12 Elm Street")
        assert c.street_dir_prefix is None
        assert c.street_name == "Elm"

    def test_multi_word_name(self):
        c = parse_street_address("77 Old Mill Pond Lane")
        assert c.street_name == "Old Mill Pond"
        assert c.street_suffix == "Ln"

    def test_case_insensitive_and_direction_uppercased(self):
        c = parse_street_address("5 s governors ave")
        assert c.street_dir_prefix == "S"
        assert c.street_suffix == "Ave"

    def test_extra_whitespace_collapsed(self):
        c = parse_street_address("  10   Water   Street  ")
        assert c.street_number == "10"
        assert c.street_name == "Water"

    @pytest.mark.parametrize("text", ["", "   ", None, "no number here"])
    def test_blank_or_unparseable_is_empty(self, text):
        assert parse_street_address(text).is_empty()


# ============================================================================
# Composite fields
# ============================================================================

class TestCompositeFields:
    def test_full_address_with_unit(self):
        assert build_full_address("12 Oak Rd", "4B", "Dover", "DE", "19901") == (
            "12 Oak Rd, Unit 4B, Dover, DE, 19901"
        )

    def test_full_address_skips_blanks(self):
        assert build_full_address("12 Oak Rd", None, "Dover", "", "19901") == "12 Oak Rd, Dover, 19901"

    def test_full_address_all_blank(self):
        assert build_full_address(None, None, None, None, None) is None

    def test_unparsed_matches_full(self):
        args = ("12 Oak Rd", "4B", "Dover", "DE", "19901")
        assert build_unparsed_address(*args) == build_full_address(*args)

    def test_full_street_address_includes_directions(self):
        c = parse_street_address("123 n Main street e")
        assert build_full_street_address(c) == "123 N Main St E"

    def test_full_street_address_with_unit(self):
        c = parse_street_address("456 Oak Avenue")
        assert build_full_street_address(c, "2") == "456 Oak Ave Unit 2"

    def test_full_street_address_empty(self):
        assert build_full_street_address(AddressComponents()) is None


class TestLegacyAliases:
    def test_fills_missing(self):
        aliases = legacy_address_aliases("12 Oak Rd", "DE", 19901, {})
        assert aliases == {"address": "12 Oak Rd", "region": "DE", "zip": "19901"}

    def test_existing_values_kept(self):
        aliases = legacy_address_aliases(
            "12 Oak Rd", "DE", "19901", {"address": "old", "region": "Delaware", "zip": None},
        )
        assert aliases == {"zip": "19901"}
