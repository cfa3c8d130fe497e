"""
Technical indicators for the dashboard's analysis panel.

Computed from whatever HistoricalSeries the market service produced, so a
fallback series yields fallback indicators with the same shape.
"""

import math
import pandas as pd
from typing import Optional

from ..models.market import HistoricalSeries, TechnicalIndicators


def _latest(series: pd.Series) -> Optional[float]:
    if series.empty:
        return None
    value = float(series.iloc[-1])
    if math.isnan(value) or math.isinf(value):
        return None
    return round(value, 2)


def calculate_indicators(history: HistoricalSeries) -> TechnicalIndicators:
    """
    Latest SMA 20/50, RSI 14 and MACD (12/26, signal 9) for a price series.
    Windows longer than the series come back as None.
    """
    close = pd.Series([point.close for point in history.points], dtype="float64")

    sma_20 = close.rolling(window=20).mean()
    sma_50 = close.rolling(window=50).mean()

    delta = close.diff()
    gain = delta.where(delta > 0, 0.0).rolling(window=14).mean()
    loss = (-delta.where(delta < 0, 0.0)).rolling(window=14).mean()
    rs = gain / loss
    rsi = 100 - (100 / (1 + rs))
    # No losses in the window means RSI pegs at 100
    rsi = rsi.where(loss != 0, 100.0).where(gain.notna())

    exp1 = close.ewm(span=12, adjust=False).mean()
    exp2 = close.ewm(span=26, adjust=False).mean()
    macd = exp1 - exp2
    signal_line = macd.ewm(span=9, adjust=False).mean()
    if len(close) < 26:
        macd = macd.iloc[0:0]
        signal_line = signal_line.iloc[0:0]

    return TechnicalIndicators(
        symbol=history.symbol,
        sma_20=_latest(sma_20),
        sma_50=_latest(sma_50),
        rsi=_latest(rsi),
        macd=_latest(macd),
        signal_line=_latest(signal_line),
        data_source=history.data_source,
        last_updated=history.last_updated,
    )
