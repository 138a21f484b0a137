"""
Standard chart wrappers using Plotly.
"""
import plotly.express as px
import plotly.graph_objects as go
import pandas as pd
from typing import List, Optional


# =============================================================================
# CHART THEME
# =============================================================================

CHART_COLORS = {
    "primary": "#1f77b4",
    "secondary": "#ff7f0e",
    "success": "#28a745",
    "warning": "#ffc107",
    "danger": "#dc3545",
    "neutral": "#6c757d",
    "light": "#f8f9fa",
}

QUALITY_COLORS = ["#dc3545", "#fd7e14", "#ffc107", "#20c997", "#28a745"]

CHART_TEMPLATE = "plotly_white"

DEFAULT_LAYOUT = {
    "template": CHART_TEMPLATE,
    "font": {"family": "Arial, sans-serif", "size": 12},
    "margin": {"l": 50, "r": 30, "t": 40, "b": 50},
    "hoverlabel": {"bgcolor": "white"},
}


def apply_layout(fig: go.Figure, **kwargs) -> go.Figure:
    """Apply standard layout to figure."""
    layout = {**DEFAULT_LAYOUT, **kwargs}
    fig.update_layout(**layout)
    return fig


# =============================================================================
# BAR CHARTS
# =============================================================================

def horizontal_bar(df: pd.DataFrame, x: str, y: str,
                   title: str = "", color: Optional[str] = None,
                   text: Optional[str] = None) -> go.Figure:
    """
    Create horizontal bar chart.
    """
    fig = px.bar(
        df, x=x, y=y, orientation="h",
        title=title,
        color=color,
        text=text,
    )

    fig.update_traces(textposition="outside")
    fig.update_layout(yaxis={"categoryorder": "total ascending"})

    return apply_layout(fig)


def grouped_bar(df: pd.DataFrame, x: str, y: List[str],
                title: str = "", barmode: str = "group") -> go.Figure:
    """
    Create grouped or stacked bar chart.
    """
    fig = go.Figure()

    colors = list(CHART_COLORS.values())

    for i, col in enumerate(y):
        fig.add_trace(go.Bar(
            name=col,
            x=df[x],
            y=df[col],
            marker_color=colors[i % len(colors)],
        ))

    fig.update_layout(barmode=barmode, title=title)

    return apply_layout(fig)


# =============================================================================
# TASK CHARTS
# =============================================================================

def quality_distribution_chart(df: pd.DataFrame, title: str = "Quality Distribution") -> go.Figure:
    """Bar per quality label; expects columns label, count."""
    fig = go.Figure(go.Bar(
        x=df["label"],
        y=df["count"],
        marker_color=QUALITY_COLORS[:len(df)],
        text=df["count"],
        textposition="outside",
    ))
    fig.update_layout(title=title, yaxis_title="Tasks")
    return apply_layout(fig)


def task_status_donut(df: pd.DataFrame, title: str = "Task Status") -> go.Figure:
    """Donut of Needs Estimate / Needs Quality / Complete."""
    fig = go.Figure(go.Pie(
        labels=df["status"],
        values=df["count"],
        hole=0.5,
        marker={"colors": [CHART_COLORS["warning"], CHART_COLORS["secondary"], CHART_COLORS["success"]]},
    ))
    fig.update_layout(title=title)
    return apply_layout(fig)


def estimate_accuracy_chart(df: pd.DataFrame, title: str = "Estimated vs Actual") -> go.Figure:
    """Grouped bars; expects columns label, estimated, actual."""
    fig = grouped_bar(df, x="label", y=["estimated", "actual"], title=title)
    fig.update_layout(yaxis_title="Hours")
    return fig


def hours_by_developer_chart(df: pd.DataFrame, title: str = "Hours by Developer") -> go.Figure:
    return horizontal_bar(df, x="total_hours", y="developer", title=title, text="total_hours")


def quarterly_hours_chart(matrix: pd.DataFrame, title: str = "Quarterly Hours") -> go.Figure:
    """Stacked bars per quarter, one trace per developer."""
    fig = go.Figure()
    for name, row in matrix.iterrows():
        fig.add_trace(go.Bar(name=str(name), x=list(matrix.columns), y=list(row.values)))
    fig.update_layout(barmode="stack", title=title, yaxis_title="Hours")
    return apply_layout(fig)


def estimate_group_chart(stats: pd.DataFrame, title: str = "Bell-curve Estimates by Group") -> go.Figure:
    """
    Median per group with the median +/- MAD band as error bars and the
    rounded estimate as markers.
    """
    if len(stats) == 0:
        return apply_layout(go.Figure(), title=title)

    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Median",
        x=stats["group"],
        y=stats["median"],
        marker_color=CHART_COLORS["primary"],
        error_y={"type": "data", "array": stats["mad"], "visible": True},
    ))
    fig.add_trace(go.Scatter(
        name="Estimate",
        x=stats["group"],
        y=stats["estimate"],
        mode="markers",
        marker={"color": CHART_COLORS["secondary"], "size": 10, "symbol": "diamond"},
    ))
    fig.update_layout(title=title, yaxis_title="Hours")
    return apply_layout(fig)


def score_histogram_chart(histogram: dict, title: str = "Predicted Scores") -> go.Figure:
    scores = sorted(histogram.keys(), reverse=True)
    fig = go.Figure(go.Bar(
        x=[str(s) for s in scores],
        y=[histogram[s] for s in scores],
        marker_color=[QUALITY_COLORS[s - 1] for s in scores],
    ))
    fig.update_layout(title=title, xaxis_title="Score", yaxis_title="Tasks")
    return apply_layout(fig)
