"""Stationarity checks, ARIMA order search, diagnostics and forecasting."""

from __future__ import annotations

import itertools
import warnings
from dataclasses import dataclass, field
from typing import Dict, Iterable, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.arima.model import ARIMA
from statsmodels.tsa.stattools import adfuller

from src.utils.exceptions import ModelFittingError
from src.utils.logger_config import setup_logger

logger = setup_logger(__name__)

Order = Tuple[int, int, int]
BASELINE_ORDER: Order = (0, 0, 0)


def stationarity_test(series: pd.Series, alpha: float = 0.05) -> dict:
    """Augmented Dickey-Fuller test; H0 is a unit root (non-stationary)."""
    cleaned = series.dropna()
    if len(cleaned) < 8:
        raise ValueError(f"Series too short for ADF test ({len(cleaned)} observations).")
    stat, p, used_lag, nobs, critical, _ = adfuller(cleaned, autolag="AIC", result_object=False)
    return {
        "test": "Augmented Dickey-Fuller",
        "adf_stat": float(stat),
        "p_value": float(p),
        "used_lag": int(used_lag),
        "nobs": int(nobs),
        "critical_values": {k: float(v) for k, v in critical.items()},
        "stationary": bool(p < alpha),
    }


def find_differencing_order(series: pd.Series, max_d: int = 2, alpha: float = 0.05) -> Tuple[int, list]:
    """
    Difference until the ADF test rejects a unit root, at most max_d times.

    Returns (d, history) where history holds the ADF result at each level.
    """
    history = []
    current = series.dropna()
    for d in range(max_d + 1):
        result = stationarity_test(current, alpha=alpha)
        result["d"] = d
        history.append(result)
        logger.info("ADF at d=%d: stat=%.3f p=%.4f", d, result["adf_stat"], result["p_value"])
        if result["stationary"]:
            return d, history
        if d < max_d:
            current = current.diff().dropna()
    logger.warning("Series still non-stationary after %d differences; using d=%d", max_d, max_d)
    return max_d, history


def fit_arima(series: pd.Series, order: Order):
    """Fit ARIMA(p,d,q) by maximum likelihood with statsmodels' default trend."""
    with warnings.catch_warnings():
        # convergence / frequency chatter on short weekly series
        warnings.simplefilter("ignore")
        return ARIMA(series, order=order).fit()


def _score(result, criterion: str) -> float:
    value = float(getattr(result, criterion))
    return value if np.isfinite(value) else np.inf


@dataclass
class ArimaSearchResult:
    order: Order
    criterion: str
    score: float
    result: object
    candidates: pd.DataFrame = field(repr=False)

    @property
    def baseline_score(self) -> float:
        base = self.candidates[
            (self.candidates["p"] == 0) & (self.candidates["d"] == 0) & (self.candidates["q"] == 0)
        ]
        return float(base["score"].iloc[0]) if not base.empty else np.nan


class _CandidateScorer:
    def __init__(self, series: pd.Series, criterion: str) -> None:
        self.series = series
        self.criterion = criterion
        self.scores: Dict[Order, float] = {}
        self.fits: Dict[Order, object] = {}

    def __call__(self, order: Order) -> float:
        if order in self.scores:
            return self.scores[order]
        try:
            fitted = fit_arima(self.series, order)
            score = _score(fitted, self.criterion)
            self.fits[order] = fitted
        except (ValueError, np.linalg.LinAlgError) as exc:
            logger.debug("ARIMA%s failed: %s", order, exc)
            score = np.inf
        self.scores[order] = score
        return score

    def best(self) -> Order:
        fitted = {o: s for o, s in self.scores.items() if o in self.fits}
        if not fitted:
            raise ModelFittingError("No ARIMA candidate could be fitted.")
        # ties go to the simpler model
        return min(fitted, key=lambda o: (fitted[o], sum(o), o))

    def table(self) -> pd.DataFrame:
        rows = [{"p": o[0], "d": o[1], "q": o[2], "score": s} for o, s in self.scores.items()]
        return pd.DataFrame(rows).sort_values(["score", "p", "d", "q"]).reset_index(drop=True)


def _grid_orders(max_p: int, d: int, max_q: int) -> Iterable[Order]:
    return itertools.product(range(max_p + 1), [d], range(max_q + 1))


def _stepwise(scorer: _CandidateScorer, max_p: int, d: int, max_q: int, max_steps: int = 100) -> None:
    seeds = [(2, d, 2), (0, d, 0), (1, d, 0), (0, d, 1)]
    seeds = [(min(p, max_p), d, min(q, max_q)) for p, _, q in seeds]
    for order in seeds:
        scorer(order)

    current = min(seeds, key=lambda o: (scorer(o), sum(o)))
    for _ in range(max_steps):
        p, _, q = current
        neighbours = [
            (p + dp, d, q + dq)
            for dp in (-1, 0, 1)
            for dq in (-1, 0, 1)
            if (dp or dq) and 0 <= p + dp <= max_p and 0 <= q + dq <= max_q
        ]
        best = min(neighbours, key=lambda o: (scorer(o), sum(o)), default=current)
        if scorer(best) >= scorer(current):
            break
        current = best


def search_arima_order(
    series: pd.Series,
    max_p: int = 3,
    d: int = 0,
    max_q: int = 3,
    criterion: str = "aic",
    method: str = "grid",
) -> ArimaSearchResult:
    """
    Bounded search over ARIMA(p,d,q) orders scored by an information criterion.

    d is the differencing order found by find_differencing_order; only p and q
    are searched, so every candidate is scored on the same differenced series.
    method='grid' fits every (p, d, q) with p<=max_p, q<=max_q.
    method='stepwise' walks +/-1 neighbours in p and q from the usual seed
    orders until no neighbour improves. The (0,0,0) baseline is always
    scored, so the chosen model never scores worse than it.
    """
    if criterion not in ("aic", "bic", "aicc", "hqic"):
        raise ValueError(f"Unsupported criterion: {criterion}")
    if method not in ("grid", "stepwise"):
        raise ValueError(f"Unsupported search method: {method}")
    if d < 0:
        raise ValueError(f"Differencing order must be >= 0, got {d}")

    scorer = _CandidateScorer(series, criterion)
    scorer(BASELINE_ORDER)
    if method == "grid":
        for order in _grid_orders(max_p, d, max_q):
            scorer(order)
    else:
        _stepwise(scorer, max_p, d, max_q)

    order = scorer.best()
    search = ArimaSearchResult(
        order=order,
        criterion=criterion,
        score=scorer.scores[order],
        result=scorer.fits[order],
        candidates=scorer.table(),
    )
    logger.info(
        "Selected ARIMA%s by %s=%.2f after %d candidates (baseline %.2f)",
        order, criterion.upper(), search.score, len(scorer.scores), search.baseline_score,
    )
    return search


def residual_diagnostics(result, lags: int | None = None, alpha: float = 0.05, skip: int = 0) -> dict:
    """
    Ljung-Box independence test and a t-test that the residual mean is zero.

    Pass skip=d for a differenced model: its first d residuals carry the
    initial level.
    """
    resid = pd.Series(result.resid).iloc[skip:].dropna()
    if lags is None:
        lags = max(1, min(10, len(resid) // 5))
    lb = acorr_ljungbox(resid, lags=[lags], return_df=True)
    lb_stat = float(lb["lb_stat"].iloc[-1])
    lb_p = float(lb["lb_pvalue"].iloc[-1])
    t_stat, t_p = stats.ttest_1samp(resid, 0.0)
    return {
        "lags": int(lags),
        "ljung_box_stat": lb_stat,
        "ljung_box_p": lb_p,
        "independent": bool(lb_p > alpha),
        "resid_mean": float(resid.mean()),
        "resid_std": float(resid.std(ddof=1)),
        "mean_t_stat": float(t_stat),
        "mean_p": float(t_p),
        "centered": bool(t_p > alpha),
    }


def forecast(result, steps: int, levels: Sequence[int] = (80, 95)) -> pd.DataFrame:
    """Point forecast plus lower/upper prediction bounds for each level (in %)."""
    if steps < 1:
        raise ValueError("steps must be >= 1")
    fc = result.get_forecast(steps=steps)
    frame = pd.DataFrame({"forecast": fc.predicted_mean})
    for level in levels:
        ci = fc.conf_int(alpha=1 - level / 100)
        frame[f"lower_{level}"] = ci.iloc[:, 0].to_numpy()
        frame[f"upper_{level}"] = ci.iloc[:, 1].to_numpy()
    return frame


def backtest(forecast_frame: pd.DataFrame, actual: pd.Series, levels: Sequence[int] = (80, 95)) -> Tuple[pd.DataFrame, dict]:
    """
    Line up the held-out actuals against the forecast.

    Alignment is positional (week k of the test set against forecast step k).
    The metrics are descriptive only.
    """
    n = min(len(forecast_frame), len(actual))
    frame = forecast_frame.iloc[:n].copy()
    frame["actual"] = actual.iloc[:n].to_numpy(dtype=float)
    frame["error"] = frame["actual"] - frame["forecast"]

    metrics = {
        "n": int(n),
        "mae": float(frame["error"].abs().mean()),
        "rmse": float(np.sqrt((frame["error"] ** 2).mean())),
        "bias": float(frame["error"].mean()),
    }
    for level in levels:
        lower, upper = f"lower_{level}", f"upper_{level}"
        if lower in frame.columns:
            inside = frame["actual"].between(frame[lower], frame[upper])
            metrics[f"coverage_{level}"] = float(inside.mean())
    return frame, metrics
