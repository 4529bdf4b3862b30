"""Statistical helper utilities for the shootings and Covid reports."""

from .analysis_utils import (
    StatTestReport,
    extract_group_samples,
    describe_groups,
    normality_test,
    group_normality,
    variance_test,
    welch_anova,
    tukey_hsd,
    pair_result,
)
from .time_series import (
    ArimaSearchResult,
    stationarity_test,
    find_differencing_order,
    fit_arima,
    search_arima_order,
    residual_diagnostics,
    forecast,
    backtest,
)

__all__ = [
    'StatTestReport',
    'extract_group_samples',
    'describe_groups',
    'normality_test',
    'group_normality',
    'variance_test',
    'welch_anova',
    'tukey_hsd',
    'pair_result',
    'ArimaSearchResult',
    'stationarity_test',
    'find_differencing_order',
    'fit_arima',
    'search_arima_order',
    'residual_diagnostics',
    'forecast',
    'backtest',
]
