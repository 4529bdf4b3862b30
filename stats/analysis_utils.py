"""Group-comparison statistics for the borough rate report."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multicomp import pairwise_tukeyhsd
from statsmodels.stats.oneway import anova_oneway


def extract_group_samples(
    df: pd.DataFrame,
    group_col: str,
    value_col: str,
    groups: Sequence[str | int] | None = None,
    dropna: bool = True,
) -> Mapping[str | int, pd.Series]:
    """Return a mapping of group values to sample series."""
    if groups is None:
        groups = sorted(df[group_col].dropna().unique())
    samples: dict[str | int, pd.Series] = {}
    for group in groups:
        series = df.loc[df[group_col] == group, value_col]
        samples[group] = series.dropna() if dropna else series
    return samples


def describe_groups(df: pd.DataFrame, group_col: str, value_col: str) -> pd.DataFrame:
    """Count, mean and standard deviation of value_col per group."""
    return df.groupby(group_col)[value_col].agg(['count', 'mean', 'std'])


def normality_test(series: pd.Series, *, method: str = "auto") -> Tuple[str, float, float]:
    """Run a normality test and return (method, stat, p)."""
    cleaned = series.dropna()
    if cleaned.empty:
        raise ValueError("Series has no non-null values for normality test.")
    if method == "auto":
        method = "shapiro" if len(cleaned) <= 5000 else "dagostino"
    if method == "shapiro":
        stat, p = stats.shapiro(cleaned)
    elif method == "dagostino":
        stat, p = stats.normaltest(cleaned)
    else:
        raise ValueError(f"Unsupported method: {method}")
    return method, float(stat), float(p)


def group_normality(samples: Mapping[str | int, pd.Series]) -> pd.DataFrame:
    """Shapiro/D'Agostino per group, for the assumptions table."""
    rows = []
    for group, series in samples.items():
        if series.dropna().nunique() < 3:
            rows.append({"group": group, "method": None, "statistic": np.nan, "p_value": np.nan})
            continue
        method, stat, p = normality_test(series)
        rows.append({"group": group, "method": method, "statistic": stat, "p_value": p})
    return pd.DataFrame(rows).set_index("group")


def variance_test(*groups: pd.Series, center: str = "median") -> Tuple[float, float]:
    """Levene's test for equal variances across any number of groups."""
    cleaned = [g.dropna() for g in groups]
    stat, p = stats.levene(*cleaned, center=center)
    return float(stat), float(p)


@dataclass
class StatTestReport:
    question: str
    hypothesis_null: str
    hypothesis_alt: str
    test_name: str
    statistic: float
    p_value: float
    alpha: float = 0.05
    df: Tuple[float, ...] | None = None
    notes: str | None = None

    @property
    def significant(self) -> bool:
        return self.p_value < self.alpha

    def to_dict(self) -> dict:
        payload = {
            "question": self.question,
            "H0": self.hypothesis_null,
            "H1": self.hypothesis_alt,
            "test": self.test_name,
            "statistic": self.statistic,
            "p_value": self.p_value,
            "significant": self.significant,
        }
        if self.df is not None:
            payload["df"] = self.df
        if self.notes:
            payload["notes"] = self.notes
        return payload


def welch_anova(df: pd.DataFrame, group_col: str, value_col: str, alpha: float = 0.05) -> StatTestReport:
    """
    One-way ANOVA with Welch's correction (group variances not assumed equal).

    Every group needs at least two observations.
    """
    data = df[[group_col, value_col]].dropna()
    sizes = data.groupby(group_col).size()
    if len(sizes) < 2:
        raise ValueError("Welch ANOVA needs at least two groups.")
    if (sizes < 2).any():
        raise ValueError(f"Groups with fewer than two observations: {list(sizes[sizes < 2].index)}")

    res = anova_oneway(
        data[value_col].to_numpy(dtype=float),
        groups=data[group_col].to_numpy(),
        use_var="unequal",
        welch_correction=True,
    )
    return StatTestReport(
        question=f"Does mean {value_col} differ between {group_col} groups?",
        hypothesis_null=f"All {group_col} groups share the same mean {value_col}",
        hypothesis_alt=f"At least one {group_col} group has a different mean {value_col}",
        test_name="Welch's ANOVA",
        statistic=float(res.statistic),
        p_value=float(res.pvalue),
        alpha=alpha,
        df=tuple(float(x) for x in np.atleast_1d(res.df)),
    )


def tukey_hsd(df: pd.DataFrame, group_col: str, value_col: str, alpha: float = 0.05) -> pd.DataFrame:
    """
    Tukey honestly-significant-difference test over every pair of groups.

    Returns one row per pair: group1, group2, meandiff (group2 - group1),
    p_adj, lower, upper, reject.
    """
    data = df[[group_col, value_col]].dropna()
    res = pairwise_tukeyhsd(
        endog=data[value_col].to_numpy(dtype=float),
        groups=data[group_col].astype(str).to_numpy(),
        alpha=alpha,
    )
    # pairs come in upper-triangle order of the sorted group labels
    first, second = np.triu_indices(len(res.groupsunique), 1)
    confint = np.asarray(res.confint, dtype=float)
    return pd.DataFrame({
        "group1": res.groupsunique[first],
        "group2": res.groupsunique[second],
        "meandiff": np.asarray(res.meandiffs, dtype=float),
        "p_adj": np.asarray(res.pvalues, dtype=float),
        "lower": confint[:, 0],
        "upper": confint[:, 1],
        "reject": np.asarray(res.reject, dtype=bool),
    })


def pair_result(pairs: pd.DataFrame, a: str, b: str) -> pd.Series:
    """Look up the Tukey row for a pair regardless of the order it is listed in."""
    mask = ((pairs["group1"] == a) & (pairs["group2"] == b)) | ((pairs["group1"] == b) & (pairs["group2"] == a))
    match = pairs[mask]
    if match.empty:
        raise KeyError(f"No pairwise result for {a} vs {b}")
    return match.iloc[0]
