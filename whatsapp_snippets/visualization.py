"""
Visualization functions for stored snippets.

Provides the daily activity chart using plotly.
"""

from pathlib import Path
from typing import Any, Dict, List, Sequence
import logging

import plotly.graph_objects as go  # type: ignore[import-untyped]

from whatsapp_snippets.etl.classifier import MESSAGE_TYPES

logger = logging.getLogger(__name__)


def build_activity_figure(rows: Sequence[Dict[str, Any]]) -> go.Figure:
    """
    Build a stacked bar chart of snippets per day, split by message type.

    Args:
        rows: Dicts with 'day' (YYYY-MM-DD), 'message_type' and 'count'.

    Returns:
        plotly Figure. Days without a type get a zero bar for that type.
    """
    days: List[str] = sorted({row["day"] for row in rows})
    counts = {(row["day"], row["message_type"]): row["count"] for row in rows}
    present = {row["message_type"] for row in rows}

    fig = go.Figure()
    for message_type in MESSAGE_TYPES:
        if message_type not in present:
            continue
        fig.add_trace(
            go.Bar(
                name=message_type,
                x=days,
                y=[counts.get((day, message_type), 0) for day in days],
            )
        )

    fig.update_layout(
        barmode="stack",
        title="Snippets per day",
        xaxis_title="Day",
        yaxis_title="Messages",
        legend_title="Type",
    )
    return fig


def write_activity_chart(rows: Sequence[Dict[str, Any]], output_file: str) -> Path:
    """
    Write the activity chart as a standalone HTML file.

    Args:
        rows: Daily counts, as for build_activity_figure().
        output_file: Destination .html path.

    Returns:
        Path to the written file.
    """
    path = Path(output_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    build_activity_figure(rows).write_html(str(path), include_plotlyjs="cdn")
    logger.info(f"Activity chart written to {path}")
    return path
