"""
Source Dataset Downloader Module.

This module fetches the raw tables both reports start from: the NYPD Shooting
Incident Data (Historic) export from NYC Open Data, and the Johns Hopkins CSSE
Covid-19 global time series with its population lookup table.

Every fetch is a single blocking full-file download. There is no pagination
and no retry: a failed request aborts the run.

Note:
    Sources may also be local file paths, which is how offline runs and the
    tests feed data in.
"""

import sys
from io import BytesIO, StringIO
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import pandas as pd
import requests
from dotenv import load_dotenv

from src.utils.config import Settings
from src.utils.exceptions import DatasetDownloadError
from src.utils.logger_config import setup_logger

logger = setup_logger(__name__)


class SourceDownloader:
    """
    A class to handle the download of the raw source tables.

    Attributes:
        timeout (float): Seconds to wait for the server before giving up
        session (requests.Session): HTTP session used for every request

    Example:
        >>> downloader = SourceDownloader(timeout=30)
        >>> df = downloader.fetch_table('https://example.org/data.csv')
    """

    def __init__(self, timeout: float = 60.0, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()

    @staticmethod
    def _is_remote(source: str) -> bool:
        return urlparse(str(source)).scheme in ('http', 'https')

    @staticmethod
    def _is_excel(source: str) -> bool:
        path = urlparse(str(source)).path
        return path.lower().endswith(('.xlsx', '.xls'))

    def _make_request(self, url: str) -> requests.Response:
        """
        Make a single HTTP GET for the full file.

        Args:
            url (str): Address of the file to fetch

        Returns:
            requests.Response: Response object with status 200

        Raises:
            DatasetDownloadError: On a network error or any non-200 status
        """
        try:
            logger.debug(f'Requesting: {url}')
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f'Network error fetching {url}: {str(e)}')
            raise DatasetDownloadError(f'Network error fetching {url}: {str(e)}') from e

        if response.status_code != 200:
            logger.error(f'Request failed with status {response.status_code}: {url}')
            raise DatasetDownloadError(f'Request to {url} failed with status {response.status_code}')
        return response

    def fetch_table(self, source: str, **read_kwargs) -> pd.DataFrame:
        """
        Fetch a CSV or XLSX table from a URL or a local path.

        Args:
            source (str): URL or local file path
            **read_kwargs: Passed through to pandas.read_csv / read_excel

        Returns:
            pd.DataFrame: The parsed table

        Raises:
            DatasetDownloadError: If the file cannot be fetched or parsed
        """
        excel = self._is_excel(source)
        try:
            if self._is_remote(source):
                response = self._make_request(source)
                if excel:
                    df = pd.read_excel(BytesIO(response.content), **read_kwargs)
                else:
                    df = pd.read_csv(StringIO(response.text), low_memory=False, **read_kwargs)
            else:
                path = Path(source)
                if not path.exists():
                    raise DatasetDownloadError(f'Local source does not exist: {path}')
                if excel:
                    df = pd.read_excel(path, **read_kwargs)
                else:
                    df = pd.read_csv(path, low_memory=False, **read_kwargs)
        except DatasetDownloadError:
            raise
        except Exception as e:
            logger.error(f'Failed to parse {source}: {str(e)}')
            raise DatasetDownloadError(f'Failed to parse {source}: {str(e)}') from e

        if df.empty:
            raise DatasetDownloadError(f'Source {source} returned no rows')

        logger.info(f'Fetched {len(df)} rows x {df.shape[1]} columns from {source}')
        return df


def main():
    """
    Fetch every configured source once and report its shape.

    Important:
    Run as python -m src.data.download_data
    """
    settings = Settings.from_env()
    downloader = SourceDownloader(timeout=settings.http_timeout)
    for label, url in [
        ('shootings', settings.shootings_url),
        ('covid cases', settings.covid_cases_url),
        ('covid deaths', settings.covid_deaths_url),
        ('covid lookup', settings.covid_lookup_url),
    ]:
        df = downloader.fetch_table(url)
        logger.info(f'{label}: {df.shape}')


if __name__ == '__main__':
    try:
        load_dotenv()
        main()
    except Exception as e:
        logger.critical(f'Application Terminated: {str(e)}')
        sys.exit(1)
