"""
Covid-19 Forecast Report - ARIMA model of weekly Covid-19 deaths for one country.

Steps:
  - Fetch the JHU CSSE global cases/deaths series and population lookup
  - Difference cumulative counts into daily new values, resample to weeks
  - Split by calendar year, check stationarity, search ARIMA orders
  - Diagnose residuals, forecast the held-out year and compare

Usage:
    python -m src.covid_report [--country NAME] [--reports-dir DIR]
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from src import plots
from src.data.covid_series import CovidSeriesProcessor
from src.data.download_data import SourceDownloader
from src.gold.covid_weekly import add_daily_differences, split_missing_week, train_test_split_by_year, weekly_totals
from src.report import MarkdownReport
from src.utils.config import Settings
from src.utils.exceptions import AnalysisError, ModelFittingError
from src.utils.logger_config import setup_logger
from stats import ArimaSearchResult, backtest, find_differencing_order, forecast, residual_diagnostics, search_arima_order

logger = setup_logger(__name__)

REPORT_NAME = 'covid_forecast'
LEVELS = (80, 95)


@dataclass
class CovidSources:
    cases: pd.DataFrame
    deaths: pd.DataFrame
    lookup: pd.DataFrame


@dataclass
class CovidReportResult:
    daily: pd.DataFrame
    weekly: pd.Series
    train: pd.Series
    test: pd.Series
    d: int
    adf_history: List[dict]
    search: ArimaSearchResult
    diagnostics: dict
    comparison: pd.DataFrame
    metrics: dict
    report_path: Path
    figures: Dict[str, Path] = field(default_factory=dict)


def fetch_sources(settings: Settings, downloader: Optional[SourceDownloader] = None) -> CovidSources:
    downloader = downloader or SourceDownloader(timeout=settings.http_timeout)
    return CovidSources(
        cases=downloader.fetch_table(settings.covid_cases_url),
        deaths=downloader.fetch_table(settings.covid_deaths_url),
        lookup=downloader.fetch_table(settings.covid_lookup_url),
    )


def fit_weekly_model(train: pd.Series, settings: Settings):
    """Stationarity check, order search and residual diagnostics on the training weeks."""
    try:
        d, adf_history = find_differencing_order(train, max_d=settings.max_d, alpha=settings.alpha)
        search = search_arima_order(
            train,
            max_p=settings.max_p,
            d=d,
            max_q=settings.max_q,
            criterion=settings.criterion,
            method=settings.arima_method,
        )
        diagnostics = residual_diagnostics(search.result, alpha=settings.alpha, skip=search.order[1])
    except ValueError as e:
        logger.error(f'Model fitting failed: {str(e)}')
        raise ModelFittingError(f'Model fitting failed: {str(e)}') from e

    if not diagnostics['independent']:
        logger.warning(f"Residuals show autocorrelation (Ljung-Box p={diagnostics['ljung_box_p']:.3g})")
    if not diagnostics['centered']:
        logger.warning(f"Residual mean {diagnostics['resid_mean']:.3g} differs from zero (p={diagnostics['mean_p']:.3g})")
    return d, adf_history, search, diagnostics


def _render_figures(daily, weekly, train, search, comparison, figures_dir: Path) -> Dict[str, Path]:
    plots.configure_matplotlib()
    return {
        'daily_new': plots.plot_daily_new(daily, figures_dir / 'daily_new.png'),
        'weekly_deaths': plots.plot_weekly(weekly, figures_dir / 'weekly_deaths.png'),
        'calendar': plots.plot_calendar_heatmap(daily, 'new_deaths', figures_dir / 'calendar_new_deaths.png'),
        'acf_pacf': plots.plot_acf_pacf(train, figures_dir / 'train_acf_pacf.png'),
        'residuals': plots.plot_residuals(search.result.resid.iloc[search.order[1]:], figures_dir / 'residuals.png'),
        'forecast': plots.plot_forecast(train, comparison, figures_dir / 'forecast_vs_actual.png', levels=LEVELS),
    }


def _build_report(settings, daily, weekly, train, test, d, adf_history, search, diagnostics, comparison, metrics, figures) -> MarkdownReport:
    report = MarkdownReport(f'Covid-19 Weekly Deaths in {settings.country}: ARIMA Forecast')

    negatives = daily[(daily['new_cases'] < 0) | (daily['new_deaths'] < 0)]
    latest = daily.iloc[-1]
    report.heading('Data')
    report.paragraph(
        f"Source: Johns Hopkins CSSE Covid-19 global time series, joined with the JHU population lookup. "
        f"{len(daily):,} days from {daily['date'].min():%d %b %Y} to {daily['date'].max():%d %b %Y}; "
        f"population {int(latest['population']):,}. At the last date: {int(latest['cases']):,} cases "
        f"({latest['cases_per_million']:,.0f} per million) and {int(latest['deaths']):,} deaths "
        f"({latest['deaths_per_million']:,.0f} per million)."
    )
    report.bullets([
        'Daily new values are first differences of the cumulative counts; the first day is dropped.',
        f'{len(negatives)} days have negative new values. These are retroactive corrections and are left unmodified.',
        'Daily values are summed into weeks ending on Sunday.',
        (f"The week ending {settings.missing_week_end:%d %b %Y} is a known reporting gap; when it shows zero, "
         "the following week's total is split evenly across both weeks (see the run log).")
        if settings.missing_week_end is not None else 'No missing-week correction configured.',
    ])
    report.figure(figures['daily_new'], 'Daily new cases and deaths')
    report.figure(figures['calendar'], 'Calendar heatmap of daily new deaths')
    report.figure(figures['weekly_deaths'], 'Weekly deaths')

    report.heading('Training and test split')
    report.paragraph(
        f"Training: {len(train)} weeks up to {train.index.max():%d %b %Y}. "
        f"Held out: {len(test)} weeks from {test.index.min():%d %b %Y}."
    )

    report.heading('Stationarity')
    adf = pd.DataFrame(adf_history)[['d', 'adf_stat', 'p_value', 'used_lag', 'nobs', 'stationary']].set_index('d')
    report.table(adf)
    report.paragraph(f'Augmented Dickey-Fuller tests select d = {d} as the highest differencing order searched.')
    report.figure(figures['acf_pacf'], 'ACF and PACF of training weeks')

    report.heading('Model selection')
    p, dd, q = search.order
    report.paragraph(
        f"{settings.arima_method.title()} search over p <= {settings.max_p}, q <= {settings.max_q} at d = {d} "
        f"by {search.criterion.upper()} selected **ARIMA({p},{dd},{q})** with {search.criterion.upper()} = "
        f"{search.score:.2f} (baseline ARIMA(0,0,0): {search.baseline_score:.2f})."
    )
    report.table(search.candidates.head(10), index=False, floatfmt='.2f')

    report.heading('Residual diagnostics')
    report.bullets([
        f"Ljung-Box (lag {diagnostics['lags']}): Q = {diagnostics['ljung_box_stat']:.3f}, "
        f"p = {diagnostics['ljung_box_p']:.3g} -> residuals {'look' if diagnostics['independent'] else 'do not look'} independent.",
        f"Mean residual {diagnostics['resid_mean']:.3f} (t-test p = {diagnostics['mean_p']:.3g}) -> "
        f"{'centred' if diagnostics['centered'] else 'not centred'} on zero.",
    ])
    report.figure(figures['residuals'], 'Residual diagnostics')

    report.heading('Forecast vs held-out weeks')
    report.paragraph(
        'Point forecasts with 80% and 95% prediction intervals. The comparison is visual; '
        'the error summary below is descriptive, with no pass/fail threshold.'
    )
    report.bullets([f'{k}: {v:.3f}' if isinstance(v, float) else f'{k}: {v}' for k, v in metrics.items()])
    report.figure(figures['forecast'], 'Forecast vs actual')
    shown = comparison.copy()
    shown.index = shown.index.strftime('%Y-%m-%d') if isinstance(shown.index, pd.DatetimeIndex) else shown.index
    report.table(shown, floatfmt='.1f')

    report.heading('Limitations and bias')
    report.bullets([
        'Death counts depend on national reporting practice, which changed over the pandemic.',
        'Retroactive corrections show up as negative daily values and distort the weeks they fall in.',
        'A non-seasonal ARIMA cannot anticipate new variants or policy changes.',
    ])
    return report


def run_covid_report(
    settings: Settings,
    sources: Optional[CovidSources] = None,
    downloader: Optional[SourceDownloader] = None,
) -> CovidReportResult:
    """
    Run the full Covid pipeline and write the Markdown report.

    Raises:
        AnalysisError: Any fetch, processing or model failure (the run aborts)
    """
    logger.info(f'Starting Covid-19 forecast report for {settings.country}')
    if sources is None:
        sources = fetch_sources(settings, downloader)

    daily = CovidSeriesProcessor(settings.country).build(sources.cases, sources.deaths, sources.lookup)
    daily = add_daily_differences(daily)
    weekly = weekly_totals(daily, 'new_deaths', complete_weeks=True)
    weekly = split_missing_week(weekly, settings.missing_week_end)
    train, test = train_test_split_by_year(weekly, settings.split_year)

    d, adf_history, search, diagnostics = fit_weekly_model(train, settings)
    fc = forecast(search.result, steps=len(test), levels=LEVELS)
    comparison, metrics = backtest(fc, test, levels=LEVELS)
    logger.info(f"Backtest over {metrics['n']} weeks: MAE={metrics['mae']:.1f}, RMSE={metrics['rmse']:.1f}")

    figures = _render_figures(daily, weekly, train, search, comparison, settings.figures_dir / REPORT_NAME)
    report = _build_report(settings, daily, weekly, train, test, d, adf_history, search, diagnostics, comparison, metrics, figures)
    report_path = report.write(settings.reports_dir / f'{REPORT_NAME}.md')
    logger.info(f'Report written to {report_path}')

    return CovidReportResult(
        daily=daily,
        weekly=weekly,
        train=train,
        test=test,
        d=d,
        adf_history=adf_history,
        search=search,
        diagnostics=diagnostics,
        comparison=comparison,
        metrics=metrics,
        report_path=report_path,
        figures=figures,
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Model weekly Covid-19 deaths with ARIMA and backtest the forecast.')
    parser.add_argument('--country', default=None, help='Country/Region as spelled by JHU (overrides COVID_COUNTRY)')
    parser.add_argument('--reports-dir', default=None, help='Output directory (overrides REPORTS_DIR)')
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
        if args.country:
            settings.country = args.country
        if args.reports_dir:
            settings.reports_dir = Path(args.reports_dir)
        result = run_covid_report(settings)
        print(f'Report created: {result.report_path}')
        return 0
    except AnalysisError as e:
        logger.critical(f'Application Terminated: {str(e)}')
        return 1


if __name__ == '__main__':
    sys.exit(main())
