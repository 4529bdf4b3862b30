import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import sys

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.data.shooting_incidents import ShootingIncidentProcessor, deduplicate_incidents, victim_profile
from src.data.covid_series import CovidSeriesProcessor, melt_time_series, country_population
from src.gold.borough_monthly import (
    BoroughMonthlyAggregator,
    aggregate_monthly,
    attach_rates,
    borough_summary,
    fill_missing_months,
)
from src.gold.covid_weekly import (
    add_daily_differences,
    split_missing_week,
    train_test_split_by_year,
    weekly_totals,
)
from src.utils import BOROUGHS, BOROUGH_POPULATION, normalize_borough
from src.utils.exceptions import DataProcessingError

# Test data
@pytest.fixture
def raw_shootings():
    return pd.DataFrame({
        'INCIDENT_KEY': ['100', '100', '101', '102', '103', '104', '104'],
        'OCCUR_DATE': ['01/15/2022', '01/14/2022', '01/20/2022', '02/03/2022', '03/10/2022', '03/11/2022', '03/11/2022'],
        'OCCUR_TIME': ['22:10:00'] * 7,
        'BORO': ['BROOKLYN', 'BROOKLYN', 'bronx', 'QUEENS', 'MANHATTAN', 'STATEN ISLAND', 'STATEN ISLAND'],
        'STATISTICAL_MURDER_FLAG': ['false', 'true', 'false', 'false', 'true', 'false', 'false'],
        'VIC_AGE_GROUP': ['25-44', '18-24', '1022', '<18', '25-44', '45-64', '25-44'],
        'VIC_SEX': ['M', 'M', 'F', 'M', 'M', 'F', 'M'],
    })


@pytest.fixture
def clean_shootings(raw_shootings):
    return ShootingIncidentProcessor().clean(raw_shootings)


class TestBoroughLookup:
    def test_normalize_borough(self):
        assert normalize_borough(' brooklyn ') == 'BROOKLYN'
        assert normalize_borough('Staten  Island') == 'STATEN ISLAND'
        assert normalize_borough('KINGS') == 'BROOKLYN'
        assert normalize_borough('NEWARK') is None
        assert normalize_borough(None) is None

    def test_five_boroughs(self):
        assert len(BOROUGHS) == 5
        assert all(pop > 0 for pop in BOROUGH_POPULATION.values())


class TestShootingCleaning:
    def test_clean_columns_and_types(self, clean_shootings):
        assert {'incident_key', 'occur_date', 'borough', 'is_fatal'}.issubset(clean_shootings.columns)
        assert pd.api.types.is_datetime64_any_dtype(clean_shootings['occur_date'])
        assert clean_shootings['is_fatal'].dtype == bool
        assert set(clean_shootings['borough']) <= set(BOROUGHS)
        assert clean_shootings.loc[clean_shootings['incident_key'] == '101', 'borough'].iloc[0] == 'BRONX'

    def test_known_typo_recoded(self, clean_shootings):
        assert '1022' not in set(clean_shootings['vic_age_group'])
        assert (clean_shootings['vic_age_group'] == 'UNKNOWN').sum() == 1

    def test_missing_columns_raise(self, raw_shootings):
        with pytest.raises(DataProcessingError):
            ShootingIncidentProcessor().clean(raw_shootings.drop(columns=['BORO']))

    def test_unknown_borough_raises(self, raw_shootings):
        raw = raw_shootings.copy()
        raw.loc[0, 'BORO'] = 'NEWARK'
        with pytest.raises(DataProcessingError):
            ShootingIncidentProcessor().clean(raw)

    def test_victim_profile(self, clean_shootings):
        profile = victim_profile(clean_shootings, 'vic_age_group')
        assert profile.values.sum() == len(clean_shootings)
        assert profile.loc['STATEN ISLAND'].sum() == 2


class TestDeduplication:
    def test_one_row_per_key_with_earliest_date(self, clean_shootings):
        incidents = deduplicate_incidents(clean_shootings)
        assert len(incidents) == clean_shootings['incident_key'].nunique()
        assert incidents['incident_key'].is_unique
        row = incidents.set_index('incident_key').loc['100']
        assert row['occur_date'] == pd.Timestamp('2022-01-14')
        assert row['n_rows'] == 2
        assert bool(row['any_fatal']) is True

    def test_borough_of_key_spanning_two_boroughs_ignores_row_order(self):
        raw = pd.DataFrame({
            'INCIDENT_KEY': ['1', '1', '2'],
            'OCCUR_DATE': ['01/10/2022', '01/10/2022', '01/12/2022'],
            'BORO': ['QUEENS', 'BRONX', 'BRONX'],
            'STATISTICAL_MURDER_FLAG': ['false', 'false', 'false'],
        })
        processor = ShootingIncidentProcessor()
        aggregator = BoroughMonthlyAggregator()
        forward = aggregator.build(deduplicate_incidents(processor.clean(raw)))
        backward = aggregator.build(deduplicate_incidents(processor.clean(raw.iloc[::-1].reset_index(drop=True))))
        pd.testing.assert_frame_equal(forward, backward)
        # same date and time, so the alphabetical tie-break picks BRONX
        assert forward.set_index('borough').loc['BRONX', 'incidents'] == 2
        assert forward.set_index('borough').loc['QUEENS', 'incidents'] == 0

    def test_earliest_row_sets_borough(self):
        raw = pd.DataFrame({
            'INCIDENT_KEY': ['7', '7'],
            'OCCUR_DATE': ['03/02/2022', '03/01/2022'],
            'BORO': ['BRONX', 'MANHATTAN'],
            'STATISTICAL_MURDER_FLAG': ['false', 'true'],
        })
        incidents = deduplicate_incidents(ShootingIncidentProcessor().clean(raw))
        assert incidents.loc[0, 'borough'] == 'MANHATTAN'
        assert incidents.loc[0, 'occur_date'] == pd.Timestamp('2022-03-01')

    def test_min_date_matches_groupby(self, clean_shootings):
        incidents = deduplicate_incidents(clean_shootings).set_index('incident_key')
        expected = clean_shootings.groupby('incident_key')['occur_date'].min()
        pd.testing.assert_series_equal(incidents['occur_date'], expected, check_names=False)


class TestBoroughAggregator:
    def test_monthly_counts_distinct_incidents(self, clean_shootings):
        incidents = deduplicate_incidents(clean_shootings)
        monthly = aggregate_monthly(incidents)
        si = monthly[(monthly['borough'] == 'STATEN ISLAND')]
        assert si['incidents'].tolist() == [1]

    def test_every_borough_month_present_and_non_negative(self, clean_shootings):
        monthly = BoroughMonthlyAggregator().build(deduplicate_incidents(clean_shootings))
        months = pd.date_range('2022-01-01', '2022-03-01', freq='MS')
        assert len(monthly) == len(BOROUGHS) * len(months)
        pairs = set(zip(monthly['borough'], monthly['month']))
        assert pairs == {(b, m) for b in BOROUGHS for m in months}
        assert monthly['rate_per_million'].notna().all()
        assert (monthly['rate_per_million'] >= 0).all()

    def test_gap_fill_uses_borough_population(self):
        monthly = pd.DataFrame({
            'borough': ['BRONX', 'BRONX', 'QUEENS'],
            'month': pd.to_datetime(['2022-01-01', '2022-03-01', '2022-02-01']),
            'incidents': [3, 1, 2],
        })
        rated = attach_rates(fill_missing_months(monthly))
        queens_jan = rated[(rated['borough'] == 'QUEENS') & (rated['month'] == '2022-01-01')].iloc[0]
        assert queens_jan['incidents'] == 0
        assert queens_jan['population'] == BOROUGH_POPULATION['QUEENS']
        assert queens_jan['rate_per_million'] == 0.0
        bronx_jan = rated[(rated['borough'] == 'BRONX') & (rated['month'] == '2022-01-01')].iloc[0]
        assert np.isclose(bronx_jan['rate_per_million'], 3 / BOROUGH_POPULATION['BRONX'] * 1_000_000)

    def test_rates_invariant_under_row_order(self, clean_shootings):
        aggregator = BoroughMonthlyAggregator()
        expected = aggregator.build(deduplicate_incidents(clean_shootings))
        shuffled = clean_shootings.sample(frac=1.0, random_state=7).reset_index(drop=True)
        result = aggregator.build(deduplicate_incidents(shuffled))
        pd.testing.assert_frame_equal(result, expected)

    def test_empty_input_raises(self):
        with pytest.raises(DataProcessingError):
            BoroughMonthlyAggregator().build(pd.DataFrame(columns=['incident_key', 'occur_date', 'borough']))

    def test_borough_summary(self, clean_shootings):
        incidents = deduplicate_incidents(clean_shootings)
        monthly = BoroughMonthlyAggregator().build(incidents)
        summary = borough_summary(monthly, incidents)
        assert set(summary.index) == set(BOROUGHS)
        assert summary.loc['BROOKLYN', 'total_incidents'] == 1
        assert summary.loc['MANHATTAN', 'fatal_share'] == 1.0
        assert summary.loc['BRONX', 'months'] == 3


# === Covid ===

def _wide(dates, values_by_country):
    cols = {d: f'{d.month}/{d.day}/{d:%y}' for d in dates}
    rows = []
    for (province, country), values in values_by_country.items():
        row = {'Province/State': province, 'Country/Region': country, 'Lat': 0.0, 'Long': 0.0}
        row.update({cols[d]: v for d, v in zip(dates, values)})
        rows.append(row)
    return pd.DataFrame(rows)


@pytest.fixture
def covid_tables():
    dates = pd.date_range('2021-01-01', periods=5, freq='D')
    cases = _wide(dates, {
        (None, 'Ireland'): [10, 15, 15, 30, 31],
        ('Corsica', 'France'): [1, 2, 3, 4, 5],
        (None, 'France'): [10, 20, 30, 40, 50],
    })
    deaths = _wide(dates, {
        (None, 'Ireland'): [1, 2, 2, 1, 4],
        ('Corsica', 'France'): [0, 0, 1, 1, 1],
        (None, 'France'): [1, 1, 2, 2, 3],
    })
    lookup = pd.DataFrame({
        'UID': [372, 250, 25001],
        'Province_State': [None, None, 'Corsica'],
        'Country_Region': ['Ireland', 'France', 'France'],
        'Admin2': [None, None, None],
        'Population': [5_000_000, 65_000_000, 340_000],
    })
    return cases, deaths, lookup


class TestCovidSeries:
    def test_melt_parses_dates(self, covid_tables):
        cases, _, _ = covid_tables
        long = melt_time_series(cases, 'cases')
        assert long['date'].min() == pd.Timestamp('2021-01-01')
        assert set(long.columns) == {'province', 'country', 'date', 'cases'}

    def test_country_population(self, covid_tables):
        _, _, lookup = covid_tables
        assert country_population(lookup, 'France') == 65_000_000
        with pytest.raises(DataProcessingError):
            country_population(lookup, 'Atlantis')

    def test_build_sums_provinces_and_joins_population(self, covid_tables):
        daily = CovidSeriesProcessor('France').build(*covid_tables)
        assert daily['cases'].tolist() == [11, 22, 33, 44, 55]
        assert (daily['population'] == 65_000_000).all()
        assert np.isclose(daily['deaths_per_million'].iloc[-1], 4 / 65_000_000 * 1_000_000)

    def test_unknown_country_raises(self, covid_tables):
        with pytest.raises(DataProcessingError):
            CovidSeriesProcessor('Atlantis').build(*covid_tables)


class TestCovidWeekly:
    def test_daily_differences_keep_negatives(self, covid_tables):
        daily = add_daily_differences(CovidSeriesProcessor('Ireland').build(*covid_tables))
        assert len(daily) == 4
        assert daily['new_cases'].tolist() == [5, 0, 15, 1]
        assert daily['new_deaths'].tolist() == [1, 0, -1, 3]

    def test_weekly_totals_match_daily_sums(self):
        daily = pd.DataFrame({
            'date': pd.date_range('2021-01-04', '2021-01-31', freq='D'),
            'new_deaths': np.arange(1, 29),
        })
        weekly = weekly_totals(daily, 'new_deaths')
        week_end = daily['date'] + pd.to_timedelta(6 - daily['date'].dt.dayofweek, unit='D')
        expected = daily.groupby(week_end)['new_deaths'].sum()
        assert weekly.tolist() == expected.tolist()
        assert list(weekly.index) == list(expected.index)
        assert weekly.iloc[0] == sum(range(1, 8))
        assert all(ts.dayofweek == 6 for ts in weekly.index)

    def test_partial_trailing_week_dropped(self):
        daily = pd.DataFrame({
            'date': pd.date_range('2021-01-04', '2021-01-13', freq='D'),
            'new_deaths': np.ones(10, dtype=int),
        })
        assert len(weekly_totals(daily, 'new_deaths')) == 2
        complete = weekly_totals(daily, 'new_deaths', complete_weeks=True)
        assert complete.index.tolist() == [pd.Timestamp('2021-01-10')]

    def test_split_missing_week(self):
        index = pd.date_range('2021-12-19', periods=4, freq='W-SUN')
        weekly = pd.Series([10, 0, 30, 5], index=index)
        corrected = split_missing_week(weekly, pd.Timestamp('2021-12-26'))
        assert corrected.tolist() == [10, 15, 15, 5]
        assert corrected.iloc[1] + corrected.iloc[2] == weekly.iloc[2]
        assert corrected.sum() == weekly.sum()

    def test_split_skipped_when_week_not_empty(self):
        index = pd.date_range('2021-12-19', periods=3, freq='W-SUN')
        weekly = pd.Series([10, 4, 30], index=index)
        pd.testing.assert_series_equal(split_missing_week(weekly, pd.Timestamp('2021-12-26')), weekly)
        pd.testing.assert_series_equal(split_missing_week(weekly, None), weekly)

    def test_train_test_split_by_final_year(self):
        index = pd.date_range('2021-01-03', '2023-03-05', freq='W-SUN')
        weekly = pd.Series(np.arange(len(index)), index=index)
        train, test = train_test_split_by_year(weekly)
        assert train.index.max().year == 2022
        assert (test.index.year == 2023).all()
        assert len(train) + len(test) == len(weekly)
        assert train.index.freqstr == 'W-SUN'

    def test_split_year_leaving_empty_test_raises(self):
        index = pd.date_range('2021-01-03', '2021-12-26', freq='W-SUN')
        with pytest.raises(DataProcessingError):
            train_test_split_by_year(pd.Series(1, index=index), split_year=2030)
