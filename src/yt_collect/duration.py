from __future__ import annotations
import re
from typing import Optional

# PT4M30S → 270. Days are not part of the contract; a token carrying a day
# component does not match and yields 0.
_ISO_DUR = re.compile(r"^PT(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+)(?:\.\d+)?S)?$")


def _component(m: "re.Match[str]", name: str) -> int:
    raw = m.group(name)
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        return 0


def parse_duration(token: Optional[str]) -> int:
    """Parse an ISO-8601 time duration (e.g. PT1H2M3S) into whole seconds.

    Empty, missing or non-matching tokens give 0; live streams and some
    shorts come back without a duration.
    """
    if not token:
        return 0
    m = _ISO_DUR.match(token.strip())
    if not m:
        return 0
    return _component(m, "h") * 3600 + _component(m, "m") * 60 + _component(m, "s")
