"""
County lookup by ZIP code (Delaware).

Fallback for listings whose geocoding result carried no county.  The
table below was inherited from the listing admin and maps several Kent
County ZIPs to Sussex County as well.  Those ZIPs straddle the county
line, so the table cannot decide between the two: ambiguous ZIPs are
kept with every candidate and county_for_zip() refuses to pick one.
"""

import logging
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

_NEW_CASTLE = (
    "19701 19702 19703 19706 19707 19708 19709 19710 19711 19712 19713 "
    "19714 19715 19716 19717 19718 19720 19721 19801 19802 19803 19804 "
    "19805 19806 19807 19808 19809 19810 19850 19880 19884 19885 19886 "
    "19890 19891 19892 19893 19894 19895 19896 19897 19898"
)
_KENT = (
    "19901 19902 19903 19904 19905 19906 19930 19931 19933 19934 19936 "
    "19938 19939 19940 19941 19943 19944 19946 19947 19950 19951 19952 "
    "19953 19954 19955 19956 19958 19960 19962 19963 19964 19966 19967 "
    "19968 19969 19970 19971 19973 19975 19977"
)
_SUSSEX = (
    "19930 19931 19932 19933 19934 19935 19936 19937 19938 19939 19940 "
    "19941 19943 19944 19945 19946 19947 19948 19950 19951 19952 19953 "
    "19954 19956 19958 19960 19962 19963 19964 19966 19967 19968 19969 "
    "19970 19971 19973 19975 19977 19979 19980"
)


def _build_table() -> Dict[str, Tuple[str, ...]]:
    table: Dict[str, Tuple[str, ...]] = {}
    for county, zips in (("New Castle", _NEW_CASTLE), ("Kent", _KENT), ("Sussex", _SUSSEX)):
        for zip5 in zips.split():
            table[zip5] = table.get(zip5, ()) + (county,)
    return table


DELAWARE_ZIP_COUNTIES: Dict[str, Tuple[str, ...]] = _build_table()


def _zip5(zip_code) -> Optional[str]:
    if zip_code is None:
        return None
    digits = str(zip_code).strip()[:5]
    return digits if len(digits) == 5 and digits.isdigit() else None


def county_candidates(zip_code) -> Tuple[str, ...]:
    """Every county the table lists for this ZIP (empty if unknown)."""
    zip5 = _zip5(zip_code)
    if zip5 is None:
        return ()
    return DELAWARE_ZIP_COUNTIES.get(zip5, ())


def is_ambiguous(zip_code) -> bool:
    return len(county_candidates(zip_code)) > 1


def county_for_zip(zip_code) -> Optional[str]:
    """The county for a ZIP, or None when unknown or ambiguous."""
    candidates = county_candidates(zip_code)
    if len(candidates) == 1:
        return candidates[0]
    if candidates:
        logger.info(
            "ZIP %s maps to several counties (%s); leaving county unset",
            zip_code, ", ".join(candidates),
        )
    return None
