"""Static PNG figures for both reports (matplotlib + seaborn)."""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib import pyplot as plt
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf


def configure_matplotlib() -> None:
    sns.set_theme(style="whitegrid", context="notebook")
    plt.rcParams.update({"axes.spines.right": False, "axes.spines.top": False})


def _save(fig, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path


# === Shootings ===

def plot_monthly_rates(monthly: pd.DataFrame, path: Path) -> Path:
    fig, ax = plt.subplots(figsize=(14, 6))
    sns.lineplot(data=monthly, x="month", y="rate_per_million", hue="borough", ax=ax, linewidth=1.2)
    ax.set_title("Monthly Shooting Incidents per Million Residents")
    ax.set_xlabel("Month")
    ax.set_ylabel("Incidents per million")
    ax.legend(title="")
    return _save(fig, path)


def plot_rate_distribution(monthly: pd.DataFrame, path: Path) -> Path:
    fig, ax = plt.subplots(figsize=(10, 6))
    sns.boxplot(data=monthly, x="borough", y="rate_per_million", color="#9ecae1", ax=ax)
    ax.set_title("Distribution of Monthly Rates by Borough")
    ax.set_xlabel("")
    ax.set_ylabel("Incidents per million")
    return _save(fig, path)


def plot_incident_totals(incidents: pd.DataFrame, path: Path) -> Path:
    counts = (
        incidents.groupby(["borough", "any_fatal"]).size()
        .unstack(fill_value=0)
        .rename(columns={False: "Non-fatal", True: "Fatal"})
    )
    fig, ax = plt.subplots(figsize=(10, 6))
    counts.plot.bar(stacked=True, ax=ax, color=["#1F78B4", "#E31A1C"][: counts.shape[1]])
    ax.set_title("Distinct Shooting Incidents by Borough")
    ax.set_xlabel("")
    ax.set_ylabel("Incidents")
    ax.tick_params(axis="x", rotation=0)
    return _save(fig, path)


# === Covid ===

def plot_daily_new(daily: pd.DataFrame, path: Path, columns=("new_cases", "new_deaths")) -> Path:
    fig, axes = plt.subplots(len(columns), 1, figsize=(14, 3.5 * len(columns)), sharex=True)
    axes = np.atleast_1d(axes)
    for ax, col in zip(axes, columns):
        ax.plot(daily["date"], daily[col], color="#0B5ED7", linewidth=0.8)
        ax.axhline(0, color="black", linewidth=0.5)
        ax.set_ylabel(col.replace("_", " ").title())
    axes[0].set_title("Daily New Values (negative values are retroactive corrections)")
    axes[-1].set_xlabel("Date")
    return _save(fig, path)


def plot_weekly(weekly: pd.Series, path: Path, title: str = "Weekly Deaths") -> Path:
    fig, ax = plt.subplots(figsize=(14, 5))
    ax.bar(weekly.index, weekly.values, width=6, color="#6A3D9A")
    ax.set_title(title)
    ax.set_xlabel("Week ending")
    ax.set_ylabel("Count")
    return _save(fig, path)


def plot_calendar_heatmap(daily: pd.DataFrame, column: str, path: Path) -> Path:
    """Weekday x ISO-week heatmap, one panel per year."""
    df = daily[["date", column]].copy()
    iso = df["date"].dt.isocalendar()
    df["year"] = iso["year"].astype(int)
    df["week"] = iso["week"].astype(int)
    df["weekday"] = df["date"].dt.day_name().str[:3]
    years = sorted(df["year"].unique())

    fig, axes = plt.subplots(len(years), 1, figsize=(16, 2.4 * len(years)), squeeze=False)
    vmax = max(float(df[column].quantile(0.99)), 1.0)
    for ax, year in zip(axes[:, 0], years):
        grid = (
            df[df["year"] == year]
            .pivot_table(index="weekday", columns="week", values=column, aggfunc="sum")
            .reindex(["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"])
        )
        sns.heatmap(grid, cmap="rocket_r", vmin=0, vmax=vmax, ax=ax, cbar_kws={"label": column})
        ax.set_title(str(year))
        ax.set_xlabel("ISO week")
        ax.set_ylabel("")
    return _save(fig, path)


def plot_acf_pacf(series: pd.Series, path: Path, lags: int = 26) -> Path:
    lags = max(1, min(lags, len(series) // 2 - 1))
    fig, axes = plt.subplots(1, 2, figsize=(14, 4))
    plot_acf(series.dropna(), lags=lags, ax=axes[0])
    plot_pacf(series.dropna(), lags=lags, ax=axes[1], method="ywm")
    return _save(fig, path)


def plot_residuals(resid: pd.Series, path: Path) -> Path:
    resid = pd.Series(resid).dropna()
    fig, axes = plt.subplots(1, 3, figsize=(16, 4))
    axes[0].plot(resid.index, resid.values, color="#33A02C", linewidth=0.8)
    axes[0].axhline(0, color="black", linewidth=0.5)
    axes[0].set_title("Residuals")
    sns.histplot(resid, kde=True, ax=axes[1], color="#33A02C")
    axes[1].set_title("Residual distribution")
    plot_acf(resid, lags=max(1, min(20, len(resid) // 2 - 1)), ax=axes[2])
    axes[2].set_title("Residual ACF")
    return _save(fig, path)


def plot_forecast(train: pd.Series, comparison: pd.DataFrame, path: Path, levels=(80, 95)) -> Path:
    fig, ax = plt.subplots(figsize=(14, 6))
    ax.plot(train.index, train.values, color="black", linewidth=1, label="Training")
    shades = {80: 0.35, 95: 0.18}
    for level in sorted(levels, reverse=True):
        ax.fill_between(
            comparison.index,
            comparison[f"lower_{level}"],
            comparison[f"upper_{level}"],
            color="#1F78B4",
            alpha=shades.get(level, 0.25),
            label=f"{level}% interval",
        )
    ax.plot(comparison.index, comparison["forecast"], color="#1F78B4", linewidth=1.5, label="Forecast")
    if "actual" in comparison.columns:
        ax.plot(comparison.index, comparison["actual"], color="#E31A1C", linewidth=1.5, label="Actual (held out)")
    ax.set_title("Weekly Deaths: Forecast vs Held-out Actuals")
    ax.set_xlabel("Week ending")
    ax.set_ylabel("Deaths")
    ax.legend()
    return _save(fig, path)
