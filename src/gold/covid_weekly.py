"""Daily differencing, weekly resampling and the train/test split of the Covid series."""

from __future__ import annotations

from typing import Optional, Tuple

import pandas as pd

from src.utils.exceptions import DataProcessingError
from src.utils.logger_config import setup_logger

logger = setup_logger(__name__)

WEEK_FREQ = 'W-SUN'


def add_daily_differences(daily: pd.DataFrame, columns=('cases', 'deaths')) -> pd.DataFrame:
    """
    Add new_<col> = cumulative[t] - cumulative[t-1] for each column.

    The first day has no prior value and is dropped. Negative values are
    retroactive corrections in the source and are kept as-is.
    """
    df = daily.sort_values('date').reset_index(drop=True).copy()
    for col in columns:
        df[f'new_{col}'] = df[col].diff()
    df = df.iloc[1:].reset_index(drop=True)
    for col in columns:
        new_col = f'new_{col}'
        df[new_col] = df[new_col].astype('int64')
        negatives = df[df[new_col] < 0]
        if not negatives.empty:
            logger.warning(
                f'{len(negatives)} days with negative {new_col} (retroactive corrections, left unmodified); '
                f'smallest {int(negatives[new_col].min())} on {negatives.loc[negatives[new_col].idxmin(), "date"]:%Y-%m-%d}'
            )
    return df


def weekly_totals(daily: pd.DataFrame, column: str = 'new_deaths', complete_weeks: bool = False) -> pd.Series:
    """
    Sum a daily column into week-ending (Sunday) buckets.

    With complete_weeks=True a trailing week that the data stops part-way
    through is dropped.
    """
    if column not in daily.columns:
        raise DataProcessingError(f'Column {column} not in daily table')
    series = daily.set_index('date')[column]
    weekly = series.resample(WEEK_FREQ, label='right', closed='right').sum()
    weekly.index.name = 'week_ending'
    if complete_weeks and not weekly.empty and weekly.index[-1] > series.index.max():
        logger.info(f'Dropped partial week ending {weekly.index[-1]:%Y-%m-%d}')
        weekly = weekly.iloc[:-1]
    return weekly


def split_missing_week(weekly: pd.Series, week_end: Optional[pd.Timestamp]) -> pd.Series:
    """
    Spread the following week's total evenly over a week that reported nothing.

    Applied only when week_end is in the series with a zero total and has a
    successor; otherwise the series is returned unchanged with a warning.
    """
    if week_end is None:
        return weekly
    week_end = pd.Timestamp(week_end)
    following = week_end + pd.Timedelta(days=7)
    if week_end not in weekly.index or following not in weekly.index:
        logger.warning(f'Missing-week correction skipped: {week_end:%Y-%m-%d} or its successor not in series')
        return weekly
    if weekly.loc[week_end] != 0:
        logger.warning(
            f'Missing-week correction skipped: week ending {week_end:%Y-%m-%d} already has {weekly.loc[week_end]}'
        )
        return weekly

    corrected = weekly.astype('float64').copy()
    total = corrected.loc[following]
    corrected.loc[week_end] = total / 2
    corrected.loc[following] = total / 2
    logger.warning(
        f'Split {total:g} from week ending {following:%Y-%m-%d} evenly with missing week {week_end:%Y-%m-%d}'
    )
    return corrected


def train_test_split_by_year(weekly: pd.Series, split_year: Optional[int] = None) -> Tuple[pd.Series, pd.Series]:
    """
    Training = weeks before split_year, test = the rest.

    split_year defaults to the final calendar year in the series (the partial year).
    """
    if weekly.empty:
        raise DataProcessingError('Cannot split an empty weekly series')
    if split_year is None:
        split_year = int(weekly.index.max().year)

    train = weekly[weekly.index.year < split_year].asfreq(WEEK_FREQ)
    test = weekly[weekly.index.year >= split_year].asfreq(WEEK_FREQ)
    if train.empty or test.empty:
        raise DataProcessingError(f'Split year {split_year} leaves an empty train or test partition')

    logger.info(
        f'Train: {len(train)} weeks to {train.index.max():%Y-%m-%d}; '
        f'test: {len(test)} weeks from {test.index.min():%Y-%m-%d}'
    )
    return train, test
