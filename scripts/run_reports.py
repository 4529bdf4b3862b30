#!/usr/bin/env python3
"""Run both reports in sequence.

Writes: reports/nyc_shootings.md, reports/covid_forecast.md and their figures.
Exit code is 1 if either report fails.
"""
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.boroughs_report import run_boroughs_report
from src.covid_report import run_covid_report
from src.utils.config import Settings
from src.utils.exceptions import AnalysisError
from src.utils.logger_config import setup_logger

logger = setup_logger('run_reports')


def main():
    try:
        settings = Settings.from_env()
    except AnalysisError as e:
        logger.critical(f'Invalid configuration: {str(e)}')
        return 1
    failed = []
    for name, runner in [('shootings', run_boroughs_report), ('covid', run_covid_report)]:
        try:
            result = runner(settings)
            print('Wrote', result.report_path)
        except (AnalysisError, OSError) as e:
            logger.critical(f'{name} report failed: {str(e)}')
            failed.append(name)
    return 1 if failed else 0

if __name__ == '__main__':
    raise SystemExit(main())
