import pandas as pd
from typing import Dict

from src.utils.boroughs import normalize_borough
from src.utils.exceptions import DataProcessingError
from src.utils.logger_config import setup_logger

logger = setup_logger(__name__)


# Raw NYPD column -> standardized name
COLUMN_MAPPING: Dict[str, str] = {
    'INCIDENT_KEY': 'incident_key',
    'OCCUR_DATE': 'occur_date',
    'OCCUR_TIME': 'occur_time',
    'BORO': 'borough',
    'STATISTICAL_MURDER_FLAG': 'is_fatal',
    'PERP_AGE_GROUP': 'perp_age_group',
    'PERP_SEX': 'perp_sex',
    'PERP_RACE': 'perp_race',
    'VIC_AGE_GROUP': 'vic_age_group',
    'VIC_SEX': 'vic_sex',
    'VIC_RACE': 'vic_race',
}

REQUIRED_COLUMNS = ['INCIDENT_KEY', 'OCCUR_DATE', 'BORO', 'STATISTICAL_MURDER_FLAG']

# Age-group values that are keying errors in the published extract
KNOWN_AGE_GROUP_TYPOS: Dict[str, Dict[str, str]] = {
    'vic_age_group': {'1022': 'UNKNOWN'},
    'perp_age_group': {'1020': 'UNKNOWN', '1028': 'UNKNOWN', '940': 'UNKNOWN', '224': 'UNKNOWN'},
}

# Chronological order with a fixed tie-break for picking an incident's borough
DEDUP_SORT_COLUMNS = ['incident_key', 'occur_date', 'occur_time', 'borough']

_TRUE_VALUES = {'TRUE', 'Y', 'YES', '1'}
_FALSE_VALUES = {'FALSE', 'N', 'NO', '0'}


class ShootingIncidentProcessor:
    """
    A class to handle the cleaning of the NYPD Shooting Incident dataset.

    This class handles:
    - Validating and renaming the raw columns
    - Parsing dates and the murder flag
    - Normalizing borough labels to the five canonical boroughs
    - Recoding the known age-group typos

    Rows are victims, so one incident can appear more than once; see
    deduplicate_incidents for the one-row-per-incident view.
    """

    def _standardize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        missing_cols = set(REQUIRED_COLUMNS) - set(df.columns)
        if missing_cols:
            raise DataProcessingError(f'Missing a couple of Expected Columns. Are you sure you have the right Dataset? Missing {missing_cols}')

        keep = [col for col in COLUMN_MAPPING if col in df.columns]
        return df[keep].rename(columns=COLUMN_MAPPING)

    @staticmethod
    def _parse_flag(series: pd.Series) -> pd.Series:
        if series.dtype == bool:
            return series
        text = series.astype(str).str.strip().str.upper()
        unknown = ~text.isin(_TRUE_VALUES | _FALSE_VALUES)
        if unknown.any():
            raise DataProcessingError(f'Unrecognized murder flag values: {sorted(text[unknown].unique())}')
        return text.isin(_TRUE_VALUES)

    def _fix_known_typos(self, df: pd.DataFrame) -> pd.DataFrame:
        for col, fixes in KNOWN_AGE_GROUP_TYPOS.items():
            if col not in df.columns:
                continue
            values = df[col].astype('string').str.strip()
            for bad, good in fixes.items():
                mask = values == bad
                n_fixed = int(mask.sum())
                if n_fixed:
                    logger.warning(f'Recoded {n_fixed} rows of {col}={bad!r} to {good!r} (known data typo)')
                    df.loc[mask.fillna(False), col] = good
        return df

    def clean(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Data Cleaning Function

        Args:
        df (pd.DataFrame): Raw NYPD shooting incident rows

        Returns:
        pd.DataFrame: Cleaned rows, one per victim, with standardized columns

        Raises:
        DataProcessingError : Missing columns, unparsable dates, unknown boroughs or flags
        """
        try:
            logger.info(f'Starting Data Cleaning Process on {len(df)} rows')
            df = self._standardize_columns(df.copy())

            df['incident_key'] = df['incident_key'].astype(str).str.strip()

            parsed = pd.to_datetime(df['occur_date'], format='%m/%d/%Y', errors='coerce')
            if parsed.isna().any():
                # Some extracts ship ISO dates instead
                parsed = parsed.fillna(pd.to_datetime(df['occur_date'], errors='coerce'))
            n_bad_dates = int(parsed.isna().sum())
            if n_bad_dates:
                raise DataProcessingError(f'{n_bad_dates} rows have unparsable OCCUR_DATE values')
            df['occur_date'] = parsed

            boroughs = df['borough'].map(normalize_borough)
            unknown = df.loc[boroughs.isna(), 'borough'].unique()
            if len(unknown):
                raise DataProcessingError(f'Unknown borough values: {list(unknown)}')
            df['borough'] = boroughs

            df['is_fatal'] = self._parse_flag(df['is_fatal'])
            df = self._fix_known_typos(df)

            logger.debug(f'Cleaned {len(df)} records covering {df["incident_key"].nunique()} incidents')
            return df
        except DataProcessingError:
            raise
        except Exception as e:
            logger.error(f'Error in Cleaning Data : {str(e)}')
            raise DataProcessingError(f'Error in Cleaning Data : {str(e)}') from e


def deduplicate_incidents(df: pd.DataFrame) -> pd.DataFrame:
    """
    Collapse victim rows to one row per incident key.

    Rows are ordered by date, time and borough first, so the borough of the
    chronologically first row represents the incident whatever the input order.
    n_rows is the number of source rows, kept for description only: it is not
    a reliable victim count.
    """
    if df.empty:
        return pd.DataFrame(columns=['incident_key', 'occur_date', 'borough', 'n_rows', 'any_fatal'])

    order = [col for col in DEDUP_SORT_COLUMNS if col in df.columns]
    ordered = df.sort_values(order, kind='mergesort', na_position='last')
    incidents = (
        ordered.groupby('incident_key', sort=True)
        .agg(
            occur_date=('occur_date', 'min'),
            borough=('borough', 'first'),
            n_rows=('incident_key', 'size'),
            any_fatal=('is_fatal', 'any'),
        )
        .reset_index()
    )
    logger.info(f'Deduplicated {len(df)} rows to {len(incidents)} incidents')
    return incidents


def victim_profile(df: pd.DataFrame, column: str = 'vic_age_group') -> pd.DataFrame:
    """Count victim rows per borough for one demographic column."""
    if column not in df.columns:
        raise DataProcessingError(f'Column {column} not present in the incident rows')
    values = df[column].astype('string').fillna('UNKNOWN').str.strip().str.upper()
    profile = pd.crosstab(df['borough'], values)
    profile.columns.name = column
    return profile
