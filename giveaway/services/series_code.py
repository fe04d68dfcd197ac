# giveaway/services/series_code.py
"""
Series code resolution for mug serials.

A series code is 4 characters: a 2-letter region code followed by a
2-digit subregion code (e.g. "TN58"). Serial numbers are sequenced per
series code.

Resolution order:
  1. The buyer's reference code (e.g. a vehicle number "MH12AB3456"),
     when its first 4 characters look like "AA00".
  2. The order's shipping snapshot: state -> region code, district ->
     subregion code, with a fallback region and a hashed subregion for
     anything unknown.
  3. Catch-all state ("Others"): alternate between two fixed codes by the
     order's position among all catch-all orders.

Resolution never raises. Bad address data still gets *a* series code so
checkout is never blocked on it.
"""
import logging
import re
from typing import Any

from sqlmodel import Session

from giveaway.core.config import Settings, get_settings
from giveaway.core.regions import DISTRICT_CODES, STATE_CODES
from giveaway.repositories.order_repo import OrderRepository

logger = logging.getLogger(__name__)

SERIES_CODE_RE = re.compile(r"^[A-Z]{2}\d{2}$")


def normalize_name(value: Any) -> str:
    """Lowercase and collapse whitespace; None/blank -> ''."""
    if value is None:
        return ""
    return " ".join(str(value).split()).lower()


def subregion_hash_code(name: str) -> str:
    """
    Stable 2-digit code in 01..99 for a subregion missing from the tables.

    Multiply-and-add string hash kept to 32 bits. Changing the constant
    re-maps every unknown district, so leave it alone.
    """
    h = 0
    for ch in name:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return f"{h % 99 + 1:02d}"


def code_from_reference(reference_code: Any) -> str | None:
    if not isinstance(reference_code, str):
        return None
    candidate = reference_code.strip().upper()[:4]
    if SERIES_CODE_RE.match(candidate):
        return candidate
    return None


def code_from_address(
    state: Any,
    district: Any,
    fallback_region: str,
    default_code: str,
) -> str:
    state_name = normalize_name(state)
    if not state_name:
        logger.info(f"No shipping state; using default series {default_code}")
        return default_code

    region = STATE_CODES.get(state_name)
    if region is None:
        logger.info(
            f"Unknown shipping state {state!r}; using fallback region {fallback_region}"
        )
        region = fallback_region

    district_name = normalize_name(district)
    subregion = DISTRICT_CODES.get(region, {}).get(district_name)
    if subregion is None:
        subregion = subregion_hash_code(district_name)
        logger.info(
            f"Unknown district {district!r} in {region}; hashed to {subregion}"
        )

    return f"{region}{subregion}"


def catch_all_code(ordinal: int, codes: tuple[str, str]) -> str:
    """Odd ordinals take the first code, even ordinals the second."""
    return codes[0] if ordinal % 2 == 1 else codes[1]


class SeriesCodeResolver:
    """
    Resolves the series code of a mug line item.

    The catch-all alternation is per order: every mug line of one order
    sees the same count of previously persisted catch-all orders, because
    the order itself is only flushed after all its serials are allocated.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        settings: Settings | None = None,
    ):
        self.order_repo = order_repo
        self.settings = settings or get_settings()

    def resolve_series_code(self, session: Session, item: Any, shipping: Any) -> str:
        """
        Args:
            item: anything with an optional `reference_code`
            shipping: anything with `ship_state` / `ship_district`
                      (an Order, or a snapshot object shaped like one)

        Returns:
            A 4-character series code. Never raises.
        """
        try:
            return self._resolve(session, item, shipping)
        except Exception:
            logger.exception("Series code resolution failed; using default code")
            return self.settings.SERIES_DEFAULT_CODE

    def _resolve(self, session: Session, item: Any, shipping: Any) -> str:
        from_reference = code_from_reference(getattr(item, "reference_code", None))
        if from_reference:
            return from_reference

        state = getattr(shipping, "ship_state", None)
        district = getattr(shipping, "ship_district", None)

        catch_all = normalize_name(self.settings.SERIES_CATCH_ALL_REGION)
        if catch_all and normalize_name(state) == catch_all:
            ordinal = self._catch_all_ordinal(session)
            code = catch_all_code(ordinal, self.settings.SERIES_CATCH_ALL_CODES)
            logger.info(f"Catch-all shipping state, order #{ordinal} -> {code}")
            return code

        return code_from_address(
            state,
            district,
            self.settings.SERIES_FALLBACK_REGION_CODE,
            self.settings.SERIES_DEFAULT_CODE,
        )

    def _catch_all_ordinal(self, session: Session) -> int:
        try:
            previous = self.order_repo.count_by_ship_state(
                session, self.settings.SERIES_CATCH_ALL_REGION
            )
        except Exception:
            logger.exception("Could not count catch-all orders; assuming first")
            return 1
        return previous + 1
