"""Price history loaded from Alpha Vantage time series into pandas frames."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

import pandas as pd

from portfolio_tracker.errors import ProviderUnavailable
from portfolio_tracker.services.fetch_gate import FetchGate
from portfolio_tracker.services.quote_store import normalize_symbol

logger = logging.getLogger(__name__)

INTRADAY_INTERVAL = "5min"
INTRADAY_LIMIT = 100
DAILY_LIMIT = 500

PERIOD_OFFSETS = {
    "5d": pd.DateOffset(days=5),
    "1m": pd.DateOffset(months=1),
    "3m": pd.DateOffset(months=3),
    "6m": pd.DateOffset(months=6),
    "1y": pd.DateOffset(years=1),
    "2y": pd.DateOffset(years=2),
    "5y": pd.DateOffset(years=5),
}
# compact returns roughly the last 100 trading days
COMPACT_PERIODS = frozenset({"5d", "1m", "3m"})


def _parse_series(payload: dict[str, Any], series_key: str, timestamp_format: str) -> pd.DataFrame:
    series = payload.get(series_key) or {}
    rows: list[dict[str, Any]] = []
    for raw_ts, values in series.items():
        try:
            ts = datetime.strptime(raw_ts, timestamp_format)
        except ValueError:
            continue
        open_value = values.get("1. open")
        high_value = values.get("2. high")
        low_value = values.get("3. low")
        close_value = values.get("4. close")
        adj_close_value = values.get("5. adjusted close")
        volume_value = values.get("6. volume") or values.get("5. volume")
        if None in (open_value, high_value, low_value, close_value, volume_value):
            continue
        rows.append(
            {
                "timestamp": ts,
                "open": float(open_value),
                "high": float(high_value),
                "low": float(low_value),
                "close": float(close_value),
                "adjusted_close": float(adj_close_value) if adj_close_value is not None else None,
                "volume": float(volume_value),
            }
        )
    if not rows:
        return pd.DataFrame()
    df = pd.DataFrame(rows).set_index("timestamp").sort_index()
    df.index = pd.to_datetime(df.index)
    return df


def parse_daily_series(payload: dict[str, Any]) -> pd.DataFrame:
    return _parse_series(payload, "Time Series (Daily)", "%Y-%m-%d")


def parse_intraday_series(payload: dict[str, Any], interval: str = INTRADAY_INTERVAL) -> pd.DataFrame:
    return _parse_series(payload, f"Time Series ({interval})", "%Y-%m-%d %H:%M:%S")


def filter_period(df: pd.DataFrame, period: str, now: Optional[datetime] = None) -> pd.DataFrame:
    """Keep rows on or after ``now - period``."""

    if df.empty or period not in PERIOD_OFFSETS:
        return df
    start = pd.Timestamp(now or datetime.now()).normalize() - PERIOD_OFFSETS[period]
    return df[df.index >= start]


def frame_to_points(df: pd.DataFrame, limit: int) -> list[dict[str, Any]]:
    """Newest-first list of plain dicts, capped at ``limit`` rows."""

    if df.empty:
        return []
    newest_first = df.sort_index(ascending=False).head(limit)
    points: list[dict[str, Any]] = []
    for ts, row in newest_first.iterrows():
        adjusted = row.get("adjusted_close")
        points.append(
            {
                "timestamp": ts.to_pydatetime(),
                "open": float(row["open"]),
                "high": float(row["high"]),
                "low": float(row["low"]),
                "close": float(row["close"]),
                "adjusted_close": None if adjusted is None or pd.isna(adjusted) else float(adjusted),
                "volume": float(row["volume"]),
            }
        )
    return points


async def load_history(
    client: Any | None,
    gate: FetchGate,
    symbol: str,
    period: str = "1m",
    *,
    now: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Fetch price history for ``symbol`` over ``period``.

    History is never cached; every call takes a gate ticket. Raises
    ``ProviderUnavailable`` when no provider is configured or the series
    comes back empty.
    """

    normalized = normalize_symbol(symbol)
    if client is None:
        raise ProviderUnavailable(f"No market-data provider configured; cannot load history for {normalized}")

    await gate.acquire()
    if period == "1d":
        payload = await client.intraday(normalized, INTRADAY_INTERVAL)
        df = parse_intraday_series(payload, INTRADAY_INTERVAL)
        limit = INTRADAY_LIMIT
    else:
        output = "compact" if period in COMPACT_PERIODS else "full"
        payload = await client.daily_adjusted(normalized, output=output)
        df = filter_period(parse_daily_series(payload), period, now)
        limit = DAILY_LIMIT

    if df.empty:
        logger.warning("No %s history returned for %s", period, normalized)
        raise ProviderUnavailable(f"No historical data found for symbol: {normalized}")
    return frame_to_points(df, limit)


__all__ = [
    "PERIOD_OFFSETS",
    "parse_daily_series",
    "parse_intraday_series",
    "filter_period",
    "frame_to_points",
    "load_history",
]
