"""Reshape the JHU CSSE global Covid-19 time series into one country's daily table."""

from __future__ import annotations

import pandas as pd

from src.utils.exceptions import DataProcessingError
from src.utils.logger_config import setup_logger

logger = setup_logger(__name__)

ID_COLUMNS = ['Province/State', 'Country/Region', 'Lat', 'Long']
RATE_SCALE = 1_000_000


def melt_time_series(wide: pd.DataFrame, value_name: str) -> pd.DataFrame:
    """
    Turn the wide JHU layout (one column per M/D/YY date) into long rows.

    Returns columns: province, country, date, <value_name>
    """
    missing = {'Province/State', 'Country/Region'} - set(wide.columns)
    if missing:
        raise DataProcessingError(f'Not a JHU time series table, missing {missing}')

    id_vars = [c for c in ID_COLUMNS if c in wide.columns]
    long = wide.melt(id_vars=id_vars, var_name='date', value_name=value_name)
    parsed = pd.to_datetime(long['date'], format='%m/%d/%y', errors='coerce')
    if parsed.isna().any():
        bad = long.loc[parsed.isna(), 'date'].unique()[:5].tolist()
        raise DataProcessingError(f'Unparsable date columns in time series: {bad}')
    long['date'] = parsed

    long = long.rename(columns={'Province/State': 'province', 'Country/Region': 'country'})
    long[value_name] = pd.to_numeric(long[value_name], errors='coerce').fillna(0)
    return long.drop(columns=[c for c in ('Lat', 'Long') if c in long.columns])


def country_population(lookup: pd.DataFrame, country: str) -> int:
    """Population of the country-level row (no province, no county) in the JHU lookup."""
    required = {'Country_Region', 'Province_State', 'Population'}
    if not required.issubset(lookup.columns):
        raise DataProcessingError(f'Population lookup missing columns {required - set(lookup.columns)}')

    rows = lookup[(lookup['Country_Region'] == country) & lookup['Province_State'].isna()]
    if 'Admin2' in lookup.columns:
        rows = rows[rows['Admin2'].isna()]
    if rows.empty or pd.isna(rows['Population'].iloc[0]):
        raise DataProcessingError(f'No population found for {country}')
    return int(rows['Population'].iloc[0])


class CovidSeriesProcessor:
    """
    Builds the daily cumulative table for one country.

    Attributes:
    country (str): Country/Region as spelled in the JHU tables
    """

    def __init__(self, country: str = 'Ireland') -> None:
        self.country = country

    def _country_totals(self, long: pd.DataFrame, value_name: str) -> pd.Series:
        subset = long[long['country'] == self.country]
        if subset.empty:
            raise DataProcessingError(f'{self.country} not found in the {value_name} series')
        # Sum provinces (if any) into a national figure
        return subset.groupby('date')[value_name].sum().sort_index()

    def build(self, cases_wide: pd.DataFrame, deaths_wide: pd.DataFrame, lookup: pd.DataFrame) -> pd.DataFrame:
        """
        Join cumulative cases, deaths and population for the configured country.

        Returns:
        pd.DataFrame: date, cases, deaths, population, cases_per_million, deaths_per_million

        Raises:
        DataProcessingError : Layout problems, unknown country or missing population
        """
        try:
            cases = self._country_totals(melt_time_series(cases_wide, 'cases'), 'cases')
            deaths = self._country_totals(melt_time_series(deaths_wide, 'deaths'), 'deaths')
            population = country_population(lookup, self.country)
        except DataProcessingError:
            raise
        except Exception as e:
            logger.error(f'Failed to prepare Covid series for {self.country}: {str(e)}')
            raise DataProcessingError(f'Failed to prepare Covid series for {self.country}: {str(e)}') from e

        daily = pd.concat([cases, deaths], axis=1, join='inner').reset_index()
        daily['population'] = population
        daily['cases_per_million'] = daily['cases'] / population * RATE_SCALE
        daily['deaths_per_million'] = daily['deaths'] / population * RATE_SCALE

        logger.info(
            f'{self.country}: {len(daily)} days from {daily["date"].min():%Y-%m-%d} to '
            f'{daily["date"].max():%Y-%m-%d}, population {population:,}'
        )
        return daily
