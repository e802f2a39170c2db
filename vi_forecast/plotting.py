"""Charting and text rendering of a history/forecast pair"""

from typing import Optional, Sequence, Union

import plotly.graph_objects as go

from .config import DataConfig
from .forecasting import ForecastPoint
from .loader import VISample

Point = Union[VISample, ForecastPoint]


def _format_value(value: Optional[float]) -> str:
    return f"{value:.4f}" if value is not None else "null"


def format_forecast_table(history: Sequence[VISample], forecast: Sequence[ForecastPoint]) -> str:
    """Tab-separated history and forecast listing"""
    lines = ["HISTORY (date,value):"]
    lines += [f"{p.date.isoformat()}\t{_format_value(p.value)}" for p in history]
    lines += ["", "FORECAST (date,value):"]
    lines += [f"{p.date.isoformat()}\t{_format_value(p.value)}" for p in forecast]
    return "\n".join(lines)


def build_forecast_figure(history: Sequence[VISample], forecast: Sequence[ForecastPoint],
                          vi_type: str = "ndvi") -> go.Figure:
    """History as a solid line, forecast dashed, on the index's value range"""
    label = vi_type.upper()
    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=[p.date for p in history],
        y=[p.value for p in history],
        mode='lines+markers',
        name=f'{label} (history)'
    ))

    fig.add_trace(go.Scatter(
        x=[p.date for p in forecast],
        y=[p.value for p in forecast],
        mode='lines+markers',
        name=f'{label} (forecast)',
        line=dict(dash='dash')
    ))

    fig.update_layout(
        margin=dict(l=48, r=20, t=16, b=40),
        xaxis_title='Date',
        yaxis_title=label,
        yaxis=dict(range=list(DataConfig.VALUE_RANGE)),
        hovermode='x unified'
    )
    return fig
