"""AI endpoints consumed by the DocuVision dashboard."""

import logging
from datetime import datetime, timezone
from typing import Dict, List

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from docuvision.parsing import parse_model_json
from docuvision.prompts import (
    build_analysis_prompt,
    build_chat_prompt,
    build_insights_prompt,
    build_report_prompt,
    build_suggest_prompt,
)
from docuvision.rotation import LEAST_USED, ROUND_ROBIN, generate_with_rotation
from docuvision.schemas import (
    ChartSuggestion,
    ChatRequest,
    InsightsReport,
    InsightsRequest,
    ReportRequest,
    SuggestRequest,
)

logger = logging.getLogger(__name__)

ai_router = APIRouter(prefix="/api", tags=["ai"])


def bad_request(message: str) -> JSONResponse:
    return JSONResponse(content={"success": False, "error": message}, status_code=400)


async def generate(request: Request, prompt: str, strategy: str, **generation) -> str:
    """Run the key rotation loop with the application's shared pool."""
    state = request.app.state
    if state.config.daily_reset:
        state.quota_window.maybe_reset(state.key_manager)
    return await generate_with_rotation(
        state.key_manager,
        state.gemini_client,
        prompt,
        strategy=strategy,
        max_key_attempts=state.config.max_key_attempts,
        **generation,
    )


@ai_router.post("/chat")
async def chat(request: Request, body: ChatRequest) -> Dict[str, object]:
    """Answer a question about the dashboard data."""
    verbosity = body.settings.verbosity if body.settings else None
    prompt = build_chat_prompt(body.messages, body.context, verbosity)
    reply = await generate(
        request, prompt, ROUND_ROBIN, temperature=0.7, max_output_tokens=1024
    )
    return {"success": True, "reply": reply}


@ai_router.post("/ai/insights")
async def insights(request: Request, body: InsightsRequest):
    """Structured insights and chart suggestions for a dataset."""
    if body.columns is None or body.rows is None:
        return bad_request("Columns and rows are required")

    prompt = build_insights_prompt(
        body.columns, body.rows, body.chartType, body.xAxis, body.yAxis
    )
    text = await generate(request, prompt, LEAST_USED, max_output_tokens=2048)
    report = parse_model_json(text, InsightsReport)
    return {
        "success": True,
        "insights": report.model_dump(),
        "message": "Insights generated",
    }


@ai_router.post("/suggest")
async def suggest(request: Request, body: SuggestRequest):
    """Three chart suggestions for the given columns."""
    if not body.columns:
        return bad_request("Columns are required")

    prompt = build_suggest_prompt(body.columns, body.rows)
    text = await generate(request, prompt, LEAST_USED)
    suggestions = parse_model_json(text, List[ChartSuggestion])
    return [suggestion.model_dump() for suggestion in suggestions]


@ai_router.post("/generate-report")
async def generate_report(request: Request, body: ReportRequest):
    """Two-step report: combined analysis, then the final markdown report."""
    if not body.charts:
        return bad_request("No charts provided for report generation")

    logger.info(
        "Starting %s report for %d charts", body.reportType, len(body.charts)
    )
    analysis = await generate(
        request,
        build_analysis_prompt(body.charts, body.dashboardStats),
        ROUND_ROBIN,
        temperature=0.7,
        max_output_tokens=2048,
    )
    report = await generate(
        request,
        build_report_prompt(analysis, body.reportType, len(body.charts)),
        ROUND_ROBIN,
        temperature=0.5,
        max_output_tokens=4096,
    )
    logger.info("Report generation completed")

    return {
        "success": True,
        "report": report,
        "metadata": {
            "chartsAnalyzed": len(body.charts),
            "reportType": body.reportType,
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "apiCallsUsed": 2,
        },
        "message": "Report generated successfully",
    }


@ai_router.get("/test-keys")
async def test_keys(request: Request) -> Dict[str, object]:
    """Confirm keys are loaded without revealing them."""
    stats = request.app.state.key_manager.get_stats()
    return {
        "success": True,
        "message": "API keys loaded successfully",
        "keyCount": len(stats),
        "keys": [
            {
                "index": item.index,
                "preview": item.preview,
                "usageCount": item.usage_count,
                "lastUsed": item.last_used,
                "status": item.status,
            }
            for item in stats
        ],
    }
