"""Runtime settings for both reports, read from the environment (and `.env`)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pandas as pd
from dotenv import load_dotenv

from src.utils.exceptions import ConfigError


NYPD_SHOOTINGS_URL = "https://data.cityofnewyork.us/api/views/833y-fsy8/rows.csv?accessType=DOWNLOAD"

_JHU_BASE = "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/csse_covid_19_data"
JHU_CASES_URL = f"{_JHU_BASE}/csse_covid_19_time_series/time_series_covid19_confirmed_global.csv"
JHU_DEATHS_URL = f"{_JHU_BASE}/csse_covid_19_time_series/time_series_covid19_deaths_global.csv"
JHU_LOOKUP_URL = f"{_JHU_BASE}/UID_ISO_FIPS_LookUp_Table.csv"

# Week (ending Sunday) with no deaths reported; the following week carries both.
DEFAULT_MISSING_WEEK_END = "2021-12-26"


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _env_choice(name: str, default: str, choices: tuple) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in choices:
        raise ConfigError(f"{name} must be one of {choices}, got {value!r}")
    return value


@dataclass
class Settings:
    """
    Settings shared by the shootings and Covid reports.

    Attributes:
        shootings_url (str): NYPD shooting incident CSV (URL or local path)
        covid_cases_url (str): JHU confirmed-cases global time series
        covid_deaths_url (str): JHU deaths global time series
        covid_lookup_url (str): JHU UID/ISO/FIPS lookup carrying population
        country (str): Country/Region analysed by the Covid report
        reports_dir (Path): Where Markdown reports and figures are written
        http_timeout (float): Seconds before a download is abandoned
        alpha (float): Significance level for every test
        max_p, max_d, max_q (int): Bounds of the ARIMA order search
        arima_method (str): 'grid' (exhaustive) or 'stepwise'
        criterion (str): 'aic' or 'bic'
        missing_week_end (Timestamp | None): Week to split with its successor
        split_year (int | None): First held-out year; None means final year in data
    """

    shootings_url: str = NYPD_SHOOTINGS_URL
    covid_cases_url: str = JHU_CASES_URL
    covid_deaths_url: str = JHU_DEATHS_URL
    covid_lookup_url: str = JHU_LOOKUP_URL
    country: str = "Ireland"
    reports_dir: Path = field(default_factory=lambda: Path("reports"))
    http_timeout: float = 60.0
    alpha: float = 0.05
    max_p: int = 3
    max_d: int = 2
    max_q: int = 3
    arima_method: str = "grid"
    criterion: str = "aic"
    missing_week_end: Optional[pd.Timestamp] = field(
        default_factory=lambda: pd.Timestamp(DEFAULT_MISSING_WEEK_END)
    )
    split_year: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0 < self.alpha < 1:
            raise ConfigError(f"alpha must be in (0, 1), got {self.alpha}")
        if self.http_timeout <= 0:
            raise ConfigError(f"http_timeout must be positive, got {self.http_timeout}")
        self.reports_dir = Path(self.reports_dir)

    @property
    def figures_dir(self) -> Path:
        return self.reports_dir / "figures"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, loading `.env` first."""
        load_dotenv()

        missing_week = os.getenv("COVID_MISSING_WEEK_END", DEFAULT_MISSING_WEEK_END).strip()
        if missing_week.lower() in ("", "none"):
            missing_week_end = None
        else:
            try:
                missing_week_end = pd.Timestamp(missing_week)
            except ValueError:
                raise ConfigError(f"COVID_MISSING_WEEK_END is not a date: {missing_week!r}")

        split_year = os.getenv("COVID_SPLIT_YEAR")

        return cls(
            shootings_url=os.getenv("SHOOTINGS_URL", NYPD_SHOOTINGS_URL),
            covid_cases_url=os.getenv("COVID_CASES_URL", JHU_CASES_URL),
            covid_deaths_url=os.getenv("COVID_DEATHS_URL", JHU_DEATHS_URL),
            covid_lookup_url=os.getenv("COVID_LOOKUP_URL", JHU_LOOKUP_URL),
            country=os.getenv("COVID_COUNTRY", "Ireland"),
            reports_dir=Path(os.getenv("REPORTS_DIR", "reports")),
            http_timeout=_env_float("HTTP_TIMEOUT", 60.0),
            alpha=_env_float("ALPHA", 0.05),
            max_p=_env_int("ARIMA_MAX_P", 3),
            max_d=_env_int("ARIMA_MAX_D", 2),
            max_q=_env_int("ARIMA_MAX_Q", 3),
            arima_method=_env_choice("ARIMA_METHOD", "grid", ("grid", "stepwise")),
            criterion=_env_choice("ARIMA_CRITERION", "aic", ("aic", "bic")),
            missing_week_end=missing_week_end,
            split_year=_env_int("COVID_SPLIT_YEAR", 0, minimum=1) if split_year else None,
        )
