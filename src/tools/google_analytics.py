"""GOOGLE_ANALYTICS_REPORTER - GA4 Data API reports."""

import json
from datetime import date
from typing import Any

from shared.models import Credential, ToolDescriptor, ToolResult, utcnow
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import ProviderClient, call_provider, error_result, text_result

# Preset metric/dimension sets per report type
REPORT_CONFIGS: dict[str, dict[str, list[str]]] = {
    "overview": {
        "metrics": ["sessions", "totalUsers", "screenPageViews", "bounceRate", "averageSessionDuration"],
        "dimensions": [],
    },
    "traffic": {
        "metrics": ["sessions", "totalUsers", "newUsers"],
        "dimensions": ["sessionSource", "sessionMedium", "sessionCampaignName"],
    },
    "audience": {
        "metrics": ["totalUsers", "sessions", "averageSessionDuration"],
        "dimensions": ["country", "city", "deviceCategory", "operatingSystem"],
    },
    "behavior": {
        "metrics": ["screenPageViews", "userEngagementDuration", "bounceRate"],
        "dimensions": ["pagePath", "pageTitle"],
    },
    "conversions": {
        "metrics": ["conversions", "totalRevenue", "purchaseRevenue"],
        "dimensions": ["sessionSource", "sessionMedium"],
    },
}

REPORT_TYPES = [*REPORT_CONFIGS, "custom"]
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

TOOL = ToolDescriptor(
    name="GOOGLE_ANALYTICS_REPORTER",
    description="Fetch Google Analytics data and generate comprehensive reports",
    input_schema=object_schema(
        {
            "propertyId": {
                "type": "string",
                "description": "Google Analytics 4 Property ID (e.g., '123456789')"
            },
            "startDate": {
                "type": "string",
                "description": "Start date in YYYY-MM-DD format (e.g., '2024-06-01')"
            },
            "endDate": {
                "type": "string",
                "description": "End date in YYYY-MM-DD format (e.g., '2024-06-07')"
            },
            "reportType": {
                "type": "string",
                "enum": REPORT_TYPES,
                "description": "Type of report to generate (default: 'overview')"
            },
            "metrics": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Custom metrics for the 'custom' report type"
            },
            "dimensions": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Custom dimensions for the 'custom' report type"
            },
            "limit": {
                "type": "number",
                "description": f"Maximum number of rows to return (default: {DEFAULT_LIMIT}, max: {MAX_LIMIT})"
            },
        },
        required=["propertyId", "startDate", "endDate"]
    ),
    auth_provider="google",
    display_name="Google Analytics",
)


def format_duration(seconds: float) -> str:
    return f"{int(seconds // 60)}m {int(seconds % 60)}s"


def format_metric(name: str, raw: str) -> str:
    """Human-readable rendering of a metric value."""
    try:
        value = float(raw or 0)
    except ValueError:
        return raw

    if name in ("averageSessionDuration", "userEngagementDuration"):
        return format_duration(value)
    if name == "bounceRate":
        return f"{value * 100:.1f}%"
    if "revenue" in name.lower():
        return f"${value:.2f}"
    return f"{int(value):,}"


def resolve_report(report_type: str, metrics: list[str], dimensions: list[str]) -> tuple[list[str], list[str]]:
    """
    Metrics and dimensions for a report.

    Raises:
        ValueError: For an unknown report type or a custom report with no metrics
    """
    if report_type == "custom":
        if not metrics:
            raise ValueError("Custom report type requires at least one metric.")
        return metrics, dimensions

    config = REPORT_CONFIGS.get(report_type)
    if config is None:
        raise ValueError(f"Invalid report type. Supported types: {', '.join(REPORT_TYPES)}.")
    return config["metrics"], config["dimensions"]


def summarize_report(report: dict[str, Any], dimensions: list[str]) -> dict[str, Any]:
    """Split a runReport response into summary metrics and detail rows."""
    metric_headers = [h.get("name", "") for h in report.get("metricHeaders", [])]
    dimension_headers = [h.get("name", "") for h in report.get("dimensionHeaders", [])]
    rows = report.get("rows") or []

    summary: dict[str, dict[str, str]] = {}
    details: list[dict[str, str]] = []

    if rows:
        first_values = [v.get("value", "0") for v in rows[0].get("metricValues", [])]
        for name, raw in zip(metric_headers, first_values):
            summary[name] = {"raw": raw, "formatted": format_metric(name, raw)}

        if dimensions:
            for row in rows:
                record = {
                    name: v.get("value", "")
                    for name, v in zip(dimension_headers, row.get("dimensionValues", []))
                }
                record.update({
                    name: v.get("value", "")
                    for name, v in zip(metric_headers, row.get("metricValues", []))
                })
                details.append(record)

    return {"summary": summary, "detailedData": details, "totalRows": report.get("rowCount", 0)}


def build_insights(summary: dict[str, dict[str, str]], details: list[dict[str, str]], dimensions: list[str]) -> list[str]:
    insights = []
    if "sessions" in summary:
        insights.append(f"📊 Total sessions: {summary['sessions']['formatted']}")
    if "totalUsers" in summary:
        insights.append(f"👥 Unique users: {summary['totalUsers']['formatted']}")
    if "bounceRate" in summary:
        bounce_rate = float(summary["bounceRate"]["raw"] or 0)
        formatted = summary["bounceRate"]["formatted"]
        if bounce_rate < 0.4:
            insights.append(f"🎯 Excellent bounce rate: {formatted}")
        elif bounce_rate > 0.7:
            insights.append(f"⚠️ High bounce rate: {formatted}")
        else:
            insights.append(f"📈 Bounce rate: {formatted}")
    if details and "country" in dimensions:
        insights.append(f"🌍 Top country: {details[0].get('country')}")
    if details and "deviceCategory" in dimensions:
        insights.append(f"📱 Primary device type: {details[0].get('deviceCategory')}")
    return insights


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    property_id = arguments.get("propertyId")
    start_raw = arguments.get("startDate")
    end_raw = arguments.get("endDate")
    report_type = arguments.get("reportType") or "overview"
    limit = arguments.get("limit", DEFAULT_LIMIT)

    if not property_id or not start_raw or not end_raw:
        return error_result("❌ Missing required parameters: propertyId, startDate, or endDate.")

    try:
        start, end = date.fromisoformat(start_raw), date.fromisoformat(end_raw)
    except ValueError:
        return error_result("❌ Invalid date format. Please use YYYY-MM-DD format (e.g., '2024-06-01').")

    if start >= end:
        return error_result("❌ Start date must be before end date.")

    if not isinstance(limit, (int, float)) or not 1 <= limit <= MAX_LIMIT:
        return error_result(f"❌ Limit must be between 1 and {MAX_LIMIT}.")

    try:
        metrics, dimensions = resolve_report(
            report_type,
            arguments.get("metrics") or [],
            arguments.get("dimensions") or []
        )
    except ValueError as e:
        return error_result(f"❌ {e}")

    body = {
        "dateRanges": [{"startDate": start_raw, "endDate": end_raw}],
        "metrics": [{"name": m} for m in metrics],
        "dimensions": [{"name": d} for d in dimensions],
        "limit": int(limit),
    }
    client = ProviderClient(context.http, context.settings.tools.analytics_api_url)

    async def run_report(credential: Credential) -> ToolResult:
        report = await client.request(
            "POST",
            f"/properties/{property_id}:runReport",
            access_token=credential.access_token,
            json=body,
        )
        processed = summarize_report(report, dimensions)
        processed["reportInfo"] = {
            "propertyId": property_id,
            "dateRange": f"{start_raw} to {end_raw}",
            "reportType": report_type,
            "generatedAt": utcnow().isoformat(),
        }
        insights = build_insights(processed["summary"], processed["detailedData"], dimensions)

        text = "\n".join([
            "📊 **Google Analytics Report Generated**",
            "",
            f"**Report Period:** {start_raw} to {end_raw}",
            f"**Report Type:** {report_type.upper()}",
            f"**Property ID:** {property_id}",
            "",
            "```json",
            json.dumps(processed, indent=2),
            "```",
            "",
            "📋 **Key Insights:**",
            *(f"• {insight}" for insight in insights),
        ])
        return text_result(text)

    return await call_provider(context, TOOL, run_report, "fetch analytics report")
