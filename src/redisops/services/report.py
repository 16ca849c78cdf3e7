"""Parser for the store's INFO diagnostic report."""

import re
from typing import Dict, Union

from redisops.models import ParsedReport

_NUMERIC_PATTERN = re.compile(r"^[\d.]+$")
_FLOAT_PREFIX = re.compile(r"^\d*\.?\d*")


def coerce_value(value: str) -> Union[str, float]:
    """Turn purely numeric tokens into floats; `6.2.14` keeps its leading `6.2`."""
    if not _NUMERIC_PATTERN.match(value):
        return value
    prefix = _FLOAT_PREFIX.match(value).group(0)
    if prefix in ("", "."):
        return value
    return float(prefix)


def parse_report(text: str) -> ParsedReport:
    """Convert INFO text into a flat mapping.

    Keys are not namespaced by section. When two sections emit the same key the
    later one wins, which mirrors how the report format itself is consumed.
    Values holding `k=v` pairs (e.g. `db0:keys=1,expires=0`) become nested
    mappings.
    """
    report: ParsedReport = {}

    for raw_line in text.split("\n"):
        line = raw_line.rstrip("\r")
        if not line or line.startswith("#"):
            continue

        key, separator, value = line.partition(":")
        if not key or not separator:
            continue
        value = value.strip()

        if "=" in value:
            nested: Dict[str, Union[str, float]] = {}
            for pair in value.split(","):
                nested_key, nested_separator, nested_value = pair.partition("=")
                if not nested_separator:
                    continue
                nested[nested_key] = coerce_value(nested_value)
            report[key] = nested
        else:
            report[key] = coerce_value(value)

    return report
