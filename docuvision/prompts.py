"""Prompt builders for the AI endpoints."""

import json
from typing import Any, Dict, List, Optional

from docuvision.schemas import ChatContext, ChatMessage, ReportChart

VERBOSITY_INSTRUCTIONS = {
    "brief": (
        "Keep your response extremely concise. Use bullet points and maximize "
        "information density. Avoid fluff."
    ),
    "balanced": (
        "Provide a balanced response with standard analytical detail and clear "
        "structure."
    ),
    "detailed": (
        "Provide a comprehensive analysis. Explore correlations, edge cases, and "
        "provide deep context where possible."
    ),
}
DEFAULT_VERBOSITY = "balanced"

HISTORY_LENGTH = 4
SAMPLE_ROWS = 5
REPORT_VALUES = 10


def resolve_verbosity(verbosity: Optional[str]) -> str:
    if verbosity in VERBOSITY_INSTRUCTIONS:
        return verbosity
    return DEFAULT_VERBOSITY


def _format_chart(index: int, chart: Any) -> str:
    aggregates = chart.aggregates or {}
    return (
        f"Chart {index} ({chart.type}):\n"
        f"- X-Axis: {chart.xAxis}\n"
        f"- Y-Axis: {chart.yAxis}\n"
        f"- Insights: {chart.insight or 'None'}\n"
        f"- Aggregates (Chart-specific): Min={aggregates.get('min', 'N/A')}, "
        f"Max={aggregates.get('max', 'N/A')}, Avg={aggregates.get('avg', 'N/A')}"
    )


def build_chat_prompt(
    messages: List[ChatMessage],
    context: ChatContext,
    verbosity: Optional[str] = None,
) -> str:
    """System prompt plus short history for the dashboard analyst chat."""
    level = resolve_verbosity(verbosity)
    data_context = json.dumps(
        {
            "fullDataContext": context.fullDataContext,
            "visibleDataContext": context.visibleDataContext,
        },
        indent=2,
        default=str,
    )
    charts = "\n\n".join(
        _format_chart(index, chart) for index, chart in enumerate(context.charts, start=1)
    )
    history = "\n".join(
        f"{message.role.upper()}: {message.content}"
        for message in messages[-(HISTORY_LENGTH + 1) : -1]
    )

    return f"""SYSTEM ROLE: Conversational Data Analyst for DocuVision

You are an AI data analyst embedded inside a document visualization dashboard.
Help users understand charts, tables, and reports accurately and professionally.

VERBOSITY SETTING: {level}
{VERBOSITY_INSTRUCTIONS[level]}

You receive TWO data contexts with DIFFERENT scopes. Never confuse them.

DATA CONTEXT JSON:
{data_context}

CHARTS CONTEXT:
{charts or 'No charts on the dashboard.'}

RULES:
1. "fullDataContext.rowCount" is the only authoritative dataset size. If it is
   missing, say: "The full dataset size is unknown."
2. If the visible rows are fewer than the full row count, state that the UI
   shows only a preview.
3. Label every insight as "Based on the full dataset..." or "Based on the rows
   currently visible...".
4. Never invent row values that are not in "visibleDataContext.visibleRows".
5. For row-level details that are not visible, answer exactly:
   "I can analyze overall trends, but that specific row-level detail is not visible on screen."
6. Keep a professional, analytical tone.

CHAT HISTORY:
{history}

USER QUESTION:
{messages[-1].content}

Response:"""


def build_insights_prompt(
    columns: List[str],
    rows: List[Any],
    chart_type: Optional[str] = None,
    x_axis: Optional[str] = None,
    y_axis: Optional[str] = None,
) -> str:
    if chart_type and x_axis and y_axis:
        focus = (
            f"Current Chart: {chart_type} chart with X-axis: {x_axis}, Y-axis: {y_axis}. "
            "Provide insights specific to this visualization."
        )
    else:
        focus = "Suggest 3 different useful visualizations for this data."

    return f"""You are an expert data analyst and visualization specialist.

Analyze the following dataset and provide insights:

Columns: {", ".join(columns)}
Sample Data (first {SAMPLE_ROWS} rows): {json.dumps(rows[:SAMPLE_ROWS], default=str)}
Total Rows: {len(rows)}

{focus}

Provide your response in the following JSON format:
{{
  "insights": [
    {{
      "title": "Insight title",
      "description": "Detailed insight description",
      "chartSuggestion": {{
        "type": "line|bar|pie",
        "xAxis": "column name",
        "yAxis": "column name",
        "reason": "Why this visualization works"
      }}
    }}
  ],
  "summary": "Overall data summary",
  "recommendations": ["Action item 1", "Action item 2"]
}}

Return ONLY the JSON, no markdown formatting."""


def build_suggest_prompt(columns: List[str], rows: List[Any]) -> str:
    return f"""You are a data visualization expert.
Based on the data columns below, suggest exactly 3 useful charts in JSON format.

Columns:
{", ".join(columns)}

Sample Data (first rows):
{json.dumps(rows[:SAMPLE_ROWS], default=str)}

Follow this strict format:
[
  {{
    "title": "...",
    "x": "COLUMN_NAME",
    "y": "COLUMN_NAME",
    "reason": "Why this chart is useful"
  }}
]

Rules:
- Only use columns that exist
- Prefer columns with numeric values for Y axis
- Ensure suggestions are different from each other"""


def summarize_charts(charts: List[ReportChart]) -> str:
    lines = []
    for index, chart in enumerate(charts, start=1):
        snapshot = chart.dataSnapshot or {}
        x_values = snapshot.get("x") or []
        y_values = snapshot.get("y") or []
        lines.append(
            f"Chart {index}: {chart.chartType}\n"
            f"- X: {chart.xAxis} | Y: {chart.yAxis}\n"
            f"- Data points: {len(x_values)}\n"
            f"- Values: {json.dumps(list(y_values)[:REPORT_VALUES], default=str)}"
        )
    return "\n\n".join(lines)


def build_analysis_prompt(
    charts: List[ReportChart], dashboard_stats: Optional[Dict[str, Any]] = None
) -> str:
    """First report step: data and trend analysis in one call."""
    stats = json.dumps(dashboard_stats or {}, default=str)
    return f"""You are a senior data analyst. Analyze the dashboard charts below.

{summarize_charts(charts)}

Dashboard statistics: {stats}

Provide:
1. DATA ANALYSIS: key metrics, distributions and notable values per chart.
2. TREND ANALYSIS: trends, patterns, anomalies and correlations across charts.

Be specific and quantitative."""


def build_report_prompt(analysis: str, report_type: str, chart_count: int) -> str:
    """Second report step: the final markdown report."""
    if report_type == "detailed":
        style = (
            "Write a DETAILED report with sections for every chart, methodology "
            "notes, and an appendix of observations."
        )
    else:
        style = (
            "Write a concise EXECUTIVE report for decision makers, at most one "
            "page, focusing on outcomes."
        )

    return f"""You are a business intelligence report writer.

Using the analysis below of {chart_count} charts, produce a professional report
in Markdown with these sections: Executive Summary, Key Findings, Trends &
Patterns, Recommendations, Conclusion.

{style}

ANALYSIS:
{analysis}"""
