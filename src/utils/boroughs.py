"""Static lookup of the five NYC boroughs and their resident population."""

from __future__ import annotations

from typing import Dict, Optional

import pandas as pd


# 2020 US Census resident population per borough.
BOROUGH_POPULATION: Dict[str, int] = {
    "BRONX": 1_472_654,
    "BROOKLYN": 2_736_074,
    "MANHATTAN": 1_694_251,
    "QUEENS": 2_405_464,
    "STATEN ISLAND": 495_747,
}

BOROUGHS = tuple(BOROUGH_POPULATION)

# Spellings seen in NYPD / NYC Open Data extracts
_ALIASES: Dict[str, str] = {
    "THE BRONX": "BRONX",
    "KINGS": "BROOKLYN",
    "NEW YORK": "MANHATTAN",
    "RICHMOND": "STATEN ISLAND",
    "STATEN IS": "STATEN ISLAND",
}


def normalize_borough(name: Optional[str]) -> Optional[str]:
    """Map a raw borough label to one of the canonical five, or None if unknown."""
    if name is None or pd.isna(name):
        return None
    key = " ".join(str(name).upper().split())
    key = _ALIASES.get(key, key)
    return key if key in BOROUGH_POPULATION else None


def population_frame() -> pd.DataFrame:
    """Return the borough population table as a two-column frame."""
    return pd.DataFrame(
        {"borough": list(BOROUGH_POPULATION), "population": list(BOROUGH_POPULATION.values())}
    )


__all__ = ["BOROUGH_POPULATION", "BOROUGHS", "normalize_borough", "population_frame"]
