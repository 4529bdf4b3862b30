import pandas as pd

from src.utils.boroughs import BOROUGHS, population_frame
from src.utils.exceptions import DataProcessingError
from src.utils.logger_config import setup_logger

logger = setup_logger(__name__)

RATE_SCALE = 1_000_000


def aggregate_monthly(incidents: pd.DataFrame) -> pd.DataFrame:
    """Count distinct incidents per (borough, month start)."""
    if incidents.empty:
        return pd.DataFrame(columns=['borough', 'month', 'incidents'])
    temp = incidents[['incident_key', 'borough', 'occur_date']].copy()
    temp['month'] = temp['occur_date'].dt.to_period('M').dt.to_timestamp()
    monthly = (
        temp.groupby(['borough', 'month'], observed=True)['incident_key']
        .nunique()
        .rename('incidents')
        .reset_index()
    )
    return monthly


def fill_missing_months(monthly: pd.DataFrame, boroughs=BOROUGHS) -> pd.DataFrame:
    """
    Insert zero-count rows so every borough has every month of the full range.

    The range runs from the earliest to the latest month seen for any borough.
    """
    if monthly.empty:
        return monthly.copy()
    months = pd.date_range(monthly['month'].min(), monthly['month'].max(), freq='MS')
    full_index = pd.MultiIndex.from_product([list(boroughs), months], names=['borough', 'month'])
    filled = (
        monthly.set_index(['borough', 'month'])['incidents']
        .reindex(full_index, fill_value=0)
        .astype('int64')
        .reset_index()
    )
    n_added = len(filled) - len(monthly)
    if n_added:
        logger.info(f'Zero-filled {n_added} (borough, month) pairs with no recorded incidents')
    return filled


def attach_rates(monthly: pd.DataFrame) -> pd.DataFrame:
    """Join borough population and compute incidents per million residents."""
    rated = monthly.merge(population_frame(), on='borough', how='left', validate='many_to_one')
    if rated['population'].isna().any():
        unknown = rated.loc[rated['population'].isna(), 'borough'].unique()
        raise DataProcessingError(f'No population for boroughs: {list(unknown)}')
    rated['rate_per_million'] = rated['incidents'] / rated['population'] * RATE_SCALE
    return rated.sort_values(['borough', 'month']).reset_index(drop=True)


class BoroughMonthlyAggregator:
    """Builder for the monthly borough rate table used by the comparison tests.

    Design:
        - Ordered steps: aggregate → gap-fill → attach population rates.
        - Input is the deduplicated incident table, so counts are distinct
          incidents, never victims.

    Public API:
        - build(incidents): returns (borough, month, incidents, population, rate_per_million)
    """

    def __init__(self, boroughs=BOROUGHS):
        self.boroughs = tuple(boroughs)

    def build(self, incidents: pd.DataFrame) -> pd.DataFrame:
        """
        Execute the aggregation pipeline.

        Args:
            incidents: Deduplicated incidents (incident_key, occur_date, borough)

        Returns:
            Monthly rate table with one row per (borough, month)

        Raises:
            DataProcessingError: If aggregation fails or input is empty
        """
        if incidents.empty:
            raise DataProcessingError('No incidents to aggregate')
        try:
            logger.info('Starting BoroughMonthlyAggregator pipeline...')
            monthly = aggregate_monthly(incidents)
            monthly = fill_missing_months(monthly, self.boroughs)
            rated = attach_rates(monthly)

            logger.info(f"  Month range: {rated['month'].min():%Y-%m} to {rated['month'].max():%Y-%m}")
            logger.info(f"  Rows: {len(rated)} ({rated['month'].nunique()} months x {len(self.boroughs)} boroughs)")
            return rated
        except DataProcessingError:
            raise
        except Exception as e:
            logger.error(f'Monthly aggregation failed: {str(e)}')
            raise DataProcessingError(f'Monthly aggregation failed: {str(e)}') from e


def borough_summary(monthly: pd.DataFrame, incidents: pd.DataFrame = None) -> pd.DataFrame:
    """
    Descriptive statistics of the monthly rate per borough.

    If the deduplicated incidents are given, the share of incidents with at
    least one fatal victim is added.
    """
    summary = (
        monthly.groupby('borough')
        .agg(
            months=('month', 'nunique'),
            total_incidents=('incidents', 'sum'),
            mean_rate=('rate_per_million', 'mean'),
            std_rate=('rate_per_million', 'std'),
            min_rate=('rate_per_million', 'min'),
            max_rate=('rate_per_million', 'max'),
        )
    )
    if incidents is not None and not incidents.empty:
        fatal = incidents.groupby('borough')['any_fatal'].mean().rename('fatal_share')
        summary = summary.join(fatal)
        summary['fatal_share'] = summary['fatal_share'].fillna(0.0)
    return summary
