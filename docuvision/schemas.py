"""Pydantic schemas for request bodies and parsed model output."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: str
    content: str


class ChartContext(BaseModel):
    type: str = "chart"
    xAxis: Optional[str] = None
    yAxis: Optional[str] = None
    insight: Optional[str] = None
    aggregates: Optional[Dict[str, Any]] = None


class ChatContext(BaseModel):
    fullDataContext: Optional[Dict[str, Any]] = None
    visibleDataContext: Optional[Dict[str, Any]] = None
    charts: List[ChartContext] = Field(default_factory=list)


class ChatSettings(BaseModel):
    verbosity: Optional[str] = None


class ChatRequest(BaseModel):
    """Request body for POST /api/chat."""

    messages: List[ChatMessage] = Field(..., min_length=1)
    context: ChatContext = Field(default_factory=ChatContext)
    settings: Optional[ChatSettings] = None


class InsightsRequest(BaseModel):
    """Request body for POST /api/ai/insights."""

    columns: Optional[List[str]] = None
    rows: Optional[List[Any]] = None
    chartType: Optional[str] = None
    xAxis: Optional[str] = None
    yAxis: Optional[str] = None


class SuggestRequest(BaseModel):
    """Request body for POST /api/suggest."""

    columns: List[str] = Field(default_factory=list)
    rows: List[Any] = Field(default_factory=list)


class ReportChart(BaseModel):
    chartType: str = "chart"
    xAxis: Optional[str] = None
    yAxis: Optional[str] = None
    dataSnapshot: Optional[Dict[str, Any]] = None


class ReportRequest(BaseModel):
    """Request body for POST /api/generate-report."""

    charts: List[ReportChart] = Field(default_factory=list)
    dashboardStats: Optional[Dict[str, Any]] = None
    reportType: Literal["executive", "detailed"] = "executive"


# Shapes the model is asked to answer with.


class ChartSuggestion(BaseModel):
    title: str
    x: str
    y: str
    reason: str = ""


class InsightChart(BaseModel):
    type: str
    xAxis: str
    yAxis: str
    reason: str = ""


class Insight(BaseModel):
    title: str
    description: str
    chartSuggestion: Optional[InsightChart] = None


class InsightsReport(BaseModel):
    insights: List[Insight] = Field(default_factory=list)
    summary: str = ""
    recommendations: List[str] = Field(default_factory=list)
