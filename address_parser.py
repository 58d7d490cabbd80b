"""
Street address parsing.

Splits a free-text street line ("123 N Main Street E") into the
MLS-style components stored on a listing: street number, direction
prefix, street name, normalized suffix and direction suffix.

Parsing is a data-driven cascade.  ADDRESS_RULES is evaluated in order,
most specific first, and the first rule whose pattern matches wins; there
is no backtracking into later rules.  The last rule is a catch-all that
accepts any line starting with a house number, so an unparseable line
only yields empty components when it has no leading number at all.

Also builds the legacy address fields (unparsed_address, full_address,
full_street_address, address/region/zip aliases) that older consumers of
the listing record still read.
"""

import logging
import re
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# Vocabulary
# =============================================================================

# Long form (lower case) -> USPS-style abbreviation.
STREET_SUFFIXES = {
    "street": "St",
    "avenue": "Ave",
    "boulevard": "Blvd",
    "drive": "Dr",
    "lane": "Ln",
    "road": "Rd",
    "court": "Ct",
    "place": "Pl",
    "way": "Way",
    "circle": "Cir",
    "parkway": "Pkwy",
    "terrace": "Ter",
    "loop": "Loop",
}

_SUFFIX_TOKENS = (
    "St|Street|Ave|Avenue|Blvd|Boulevard|Dr|Drive|Ln|Lane|Rd|Road|Ct|Court|"
    "Pl|Place|Way|Cir|Circle|Pkwy|Parkway|Ter|Terrace|Loop"
)
# Two-letter directions first so "NE" is not read as "N" + "E...".
_DIRECTION_TOKENS = "NE|NW|SE|SW|N|S|E|W"


# =============================================================================
# Data classes
# =============================================================================

@dataclass
class AddressComponents:
    """Parsed street line.  Every part is optional."""
    street_number: Optional[str] = None
    street_dir_prefix: Optional[str] = None
    street_name: Optional[str] = None
    street_suffix: Optional[str] = None
    street_dir_suffix: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(asdict(self).values())

    def to_fields(self) -> Dict[str, Optional[str]]:
        return asdict(self)


@dataclass(frozen=True)
class AddressRule:
    """One entry in the parsing cascade.

    `extract` receives the successful match and returns the components.
    """
    name: str
    pattern: "re.Pattern[str]"
    extract: Callable[["re.Match[str]"], AddressComponents]

    def apply(self, text: str) -> Optional[AddressComponents]:
        match = self.pattern.match(text)
        if not match:
            return None
        return self.extract(match)


# =============================================================================
# Normalization helpers
# =============================================================================

def normalize_street_suffix(token: Optional[str]) -> str:
    """Map a suffix token to its standard abbreviation.

    Unknown tokens are passed through with the first letter capitalized.
    """
    if not token:
        return ""
    normalized = token.strip().strip(".").lower()
    if not normalized:
        return ""
    return STREET_SUFFIXES.get(normalized, normalized[:1].upper() + normalized[1:])


def _direction(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return token.strip(".").upper()


def _clean(token: Optional[str]) -> Optional[str]:
    if token is None:
        return None
    token = " ".join(token.split())
    return token or None


# =============================================================================
# Rule table
# =============================================================================

def _extract_directional(m: "re.Match[str]") -> AddressComponents:
    return AddressComponents(
        street_number=m.group("number"),
        street_dir_prefix=_direction(m.group("prefix")),
        street_name=_clean(m.group("name")),
        street_suffix=normalize_street_suffix(m.group("suffix")) or None,
        street_dir_suffix=_direction(m.group("dir_suffix")),
    )


def _extract_suffixed(m: "re.Match[str]") -> AddressComponents:
    return AddressComponents(
        street_number=m.group("number"),
        street_name=_clean(m.group("name")),
        street_suffix=normalize_street_suffix(m.group("suffix")) or None,
    )


def _extract_catch_all(m: "re.Match[str]") -> AddressComponents:
    return AddressComponents(
        street_number=m.group("number"),
        street_name=_clean(m.group("name")),
    )


ADDRESS_RULES: Tuple[AddressRule, ...] = (
    # 123 N Main Street E
    AddressRule(
        name="directional",
        pattern=re.compile(
            rf"^(?P<number>\d+)\s+"
            rf"(?:(?P<prefix>{_DIRECTION_TOKENS})\.?\s+)?"
            rf"(?P<name>.+?)\s+"
            rf"(?P<suffix>{_SUFFIX_TOKENS})\.?"
            rf"(?:\s+(?P<dir_suffix>{_DIRECTION_TOKENS})\.?)?\s*$",
            re.IGNORECASE,
        ),
        extract=_extract_directional,
    ),
    # 123 Main Street
    AddressRule(
        name="suffixed",
        pattern=re.compile(
            rf"^(?P<number>\d+)\s+(?P<name>.+?)\s+(?P<suffix>{_SUFFIX_TOKENS})\.?\s*$",
            re.IGNORECASE,
        ),
        extract=_extract_suffixed,
    ),
    # 123 Anything At All
    AddressRule(
        name="catch_all",
        pattern=re.compile(r"^(?P<number>\d+)\s+(?P<name>.+)$"),
        extract=_extract_catch_all,
    ),
)


def match_rule(text: str, rules: Tuple[AddressRule, ...] = ADDRESS_RULES) -> Tuple[Optional[str], AddressComponents]:
    """Run the cascade and return (rule_name, components).

    rule_name is None when nothing matched.
    """
    if not text or not text.strip():
        return None, AddressComponents()
    line = " ".join(text.split())
    for rule in rules:
        parsed = rule.apply(line)
        if parsed is not None:
            return rule.name, parsed
    return None, AddressComponents()


def parse_street_address(text: Optional[str]) -> AddressComponents:
    """Parse a free-text street line.  Never raises."""
    rule_name, components = match_rule(text or "")
    if rule_name is None and text:
        logger.debug("No address rule matched %r", text)
    return components


# =============================================================================
# Composite / legacy address fields
# =============================================================================

def _unit_label(unit_number: Optional[str]) -> Optional[str]:
    unit = _clean(str(unit_number)) if unit_number not in (None, "") else None
    return f"Unit {unit}" if unit else None


def join_address_parts(*parts: Optional[str], sep: str = ", ") -> Optional[str]:
    """Join the non-empty parts, or None if nothing is left."""
    kept = [str(p).strip() for p in parts if p is not None and str(p).strip()]
    return sep.join(kept) if kept else None


def build_full_address(
    street_address: Optional[str],
    unit_number: Optional[str],
    city: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
) -> Optional[str]:
    """"123 Main St, Unit 4, Dover, DE, 19901"."""
    return join_address_parts(street_address, _unit_label(unit_number), city, state, zip_code)


def build_unparsed_address(
    street_address: Optional[str],
    unit_number: Optional[str],
    city: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
) -> Optional[str]:
    """MLS UnparsedAddress: same layout as full_address."""
    return build_full_address(street_address, unit_number, city, state, zip_code)


def build_full_street_address(components: AddressComponents, unit_number: Optional[str] = None) -> Optional[str]:
    """Reassemble the street line from parsed components ("123 N Main St E Unit 4")."""
    return join_address_parts(
        components.street_number,
        components.street_dir_prefix,
        components.street_name,
        components.street_suffix,
        components.street_dir_suffix,
        _unit_label(unit_number),
        sep=" ",
    )


def legacy_address_aliases(
    street_address: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
    existing: Dict[str, object],
) -> Dict[str, str]:
    """Alias fields older templates read (address / region / zip).

    Aliases are only filled when the listing does not already carry them.
    """
    aliases = {}
    if street_address and not existing.get("address"):
        aliases["address"] = street_address
    if state and not existing.get("region"):
        aliases["region"] = state
    if zip_code and not existing.get("zip"):
        aliases["zip"] = str(zip_code)
    return aliases
