import pytest
import pandas as pd
import requests
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.data.download_data import SourceDownloader
from src.utils.config import Settings
from src.utils.exceptions import AnalysisError, ConfigError, DataProcessingError, DatasetDownloadError, ModelFittingError
from src.utils.logger_config import setup_logger


class FakeResponse:
    def __init__(self, status_code=200, text='', content=b''):
        self.status_code = status_code
        self.text = text
        self.content = content or text.encode()


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


CSV_TEXT = 'INCIDENT_KEY,BORO\n1,BRONX\n2,QUEENS\n'


class TestSourceDownloader:
    def test_fetch_remote_csv(self):
        session = FakeSession(FakeResponse(200, CSV_TEXT))
        df = SourceDownloader(timeout=5, session=session).fetch_table('https://example.org/shootings.csv')
        assert list(df.columns) == ['INCIDENT_KEY', 'BORO']
        assert len(df) == 2
        # single request, no retry
        assert session.calls == [('https://example.org/shootings.csv', 5)]

    def test_non_200_raises(self):
        session = FakeSession(FakeResponse(503, 'unavailable'))
        with pytest.raises(DatasetDownloadError):
            SourceDownloader(session=session).fetch_table('https://example.org/shootings.csv')
        assert len(session.calls) == 1

    def test_network_error_raises(self):
        session = FakeSession(error=requests.exceptions.ConnectionError('refused'))
        with pytest.raises(DatasetDownloadError):
            SourceDownloader(session=session).fetch_table('https://example.org/shootings.csv')

    def test_local_csv(self, tmp_path):
        path = tmp_path / 'local.csv'
        path.write_text(CSV_TEXT)
        df = SourceDownloader().fetch_table(str(path))
        assert len(df) == 2

    def test_local_xlsx(self, tmp_path):
        path = tmp_path / 'local.xlsx'
        pd.DataFrame({'a': [1, 2], 'b': ['x', 'y']}).to_excel(path, index=False)
        df = SourceDownloader().fetch_table(str(path))
        assert list(df['a']) == [1, 2]

    def test_missing_local_file(self, tmp_path):
        with pytest.raises(DatasetDownloadError):
            SourceDownloader().fetch_table(str(tmp_path / 'nope.csv'))

    def test_empty_table(self, tmp_path):
        path = tmp_path / 'empty.csv'
        path.write_text('INCIDENT_KEY,BORO\n')
        with pytest.raises(DatasetDownloadError):
            SourceDownloader().fetch_table(str(path))


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.country == 'Ireland'
        assert settings.missing_week_end == pd.Timestamp('2021-12-26')
        assert settings.figures_dir == Path('reports') / 'figures'

    def test_invalid_alpha(self):
        with pytest.raises(ConfigError):
            Settings(alpha=1.5)

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv('COVID_COUNTRY', 'France')
        monkeypatch.setenv('REPORTS_DIR', str(tmp_path))
        monkeypatch.setenv('ARIMA_MAX_P', '2')
        monkeypatch.setenv('ARIMA_METHOD', 'Stepwise')
        monkeypatch.setenv('COVID_MISSING_WEEK_END', 'none')
        monkeypatch.setenv('COVID_SPLIT_YEAR', '2022')
        settings = Settings.from_env()
        assert settings.country == 'France'
        assert settings.reports_dir == tmp_path
        assert settings.max_p == 2
        assert settings.arima_method == 'stepwise'
        assert settings.missing_week_end is None
        assert settings.split_year == 2022

    @pytest.mark.parametrize('name,value', [
        ('ALPHA', '2'),
        ('ALPHA', 'abc'),
        ('ARIMA_METHOD', 'bogus'),
        ('ARIMA_CRITERION', 'mse'),
        ('ARIMA_MAX_Q', '-1'),
        ('HTTP_TIMEOUT', '0'),
        ('COVID_MISSING_WEEK_END', 'not-a-date'),
    ])
    def test_bad_env_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigError):
            Settings.from_env()


class TestLoggingAndErrors:
    def test_setup_logger_is_idempotent(self):
        first = setup_logger('tests.idempotent')
        second = setup_logger('tests.idempotent')
        assert first is second
        assert len(second.handlers) == 2

    @pytest.mark.parametrize('error', [DatasetDownloadError, DataProcessingError, ConfigError, ModelFittingError])
    def test_errors_share_one_base(self, error):
        assert issubclass(error, AnalysisError)
