"""CALENDAR_EVENT_CREATOR - create a Google Calendar event."""

import uuid
from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

from shared.models import Credential, ToolDescriptor, ToolResult
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import ProviderClient, call_provider, error_result, text_result

TOOL = ToolDescriptor(
    name="CALENDAR_EVENT_CREATOR",
    description="Create Google Calendar events with attendees, reminders, and meeting details",
    input_schema=object_schema(
        {
            "title": {"type": "string", "description": "Event title/summary"},
            "description": {"type": "string", "description": "Event description (optional)"},
            "startDateTime": {
                "type": "string",
                "description": "Start date and time in ISO format (e.g., '2024-06-15T10:00:00')"
            },
            "endDateTime": {
                "type": "string",
                "description": "End date and time in ISO format (e.g., '2024-06-15T11:00:00')"
            },
            "timeZone": {
                "type": "string",
                "description": "Time zone (e.g., 'America/New_York'). Defaults to 'UTC'"
            },
            "attendees": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Attendee email addresses (optional)"
            },
            "location": {"type": "string", "description": "Event location (optional)"},
            "reminderMinutes": {
                "type": "array",
                "items": {"type": "number"},
                "description": "Reminder times in minutes before the event (e.g., [15, 60])"
            },
            "createMeetLink": {
                "type": "boolean",
                "description": "Whether to create a Google Meet link (default: false)"
            },
            "visibility": {
                "type": "string",
                "enum": ["default", "public", "private"],
                "description": "Event visibility (default: 'default')"
            },
            "calendarId": {
                "type": "string",
                "description": "Calendar ID (default: 'primary')"
            },
        },
        required=["title", "startDateTime", "endDateTime"]
    ),
    auth_provider="google",
    display_name="Google Calendar",
)


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def build_event(arguments: dict[str, Any]) -> dict[str, Any]:
    """Calendar API event resource from tool arguments."""
    time_zone = arguments.get("timeZone") or "UTC"
    attendees = arguments.get("attendees") or []
    reminder_minutes = arguments.get("reminderMinutes") or [15]

    event: dict[str, Any] = {
        "summary": arguments["title"],
        "start": {"dateTime": arguments["startDateTime"], "timeZone": time_zone},
        "end": {"dateTime": arguments["endDateTime"], "timeZone": time_zone},
        "visibility": arguments.get("visibility") or "default",
        "reminders": {
            "useDefault": False,
            "overrides": [{"method": "popup", "minutes": int(m)} for m in reminder_minutes],
        },
    }
    if arguments.get("description"):
        event["description"] = arguments["description"]
    if arguments.get("location"):
        event["location"] = arguments["location"]
    if attendees:
        event["attendees"] = [{"email": email} for email in attendees]
    if arguments.get("createMeetLink"):
        event["conferenceData"] = {
            "createRequest": {
                "requestId": f"meet-{uuid.uuid4().hex}",
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        }
    return event


def format_event(event: dict[str, Any], attendees: list[str]) -> str:
    lines = [
        "✅ Calendar event created successfully!",
        f"📅 Title: {event.get('summary')}",
        f"🕐 Start: {event.get('start', {}).get('dateTime', '')}",
        f"🕐 End: {event.get('end', {}).get('dateTime', '')}",
        f"🔗 Event Link: {event.get('htmlLink')}",
    ]
    if event.get("location"):
        lines.append(f"📍 Location: {event['location']}")
    if attendees:
        lines.append(f"👥 Attendees: {', '.join(attendees)}")

    entry_points = (event.get("conferenceData") or {}).get("entryPoints") or []
    if entry_points and entry_points[0].get("uri"):
        lines.append(f"🎥 Google Meet: {entry_points[0]['uri']}")

    lines.append(f"📋 Event ID: {event.get('id')}")
    return "\n".join(lines)


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    title = arguments.get("title")
    start_raw = arguments.get("startDateTime")
    end_raw = arguments.get("endDateTime")

    if not title or not start_raw or not end_raw:
        return error_result("❌ Missing required parameters: title, startDateTime, or endDateTime.")

    start, end = _parse_iso(start_raw), _parse_iso(end_raw)
    if start is None or end is None:
        return error_result("❌ Invalid date format. Please use ISO format (e.g., '2024-06-15T10:00:00').")

    try:
        if start >= end:
            return error_result("❌ Start time must be before end time.")
    except TypeError:
        return error_result("❌ Start and end times must both include a UTC offset or both omit it.")

    calendar_id = arguments.get("calendarId") or "primary"
    attendees = arguments.get("attendees") or []
    event = build_event(arguments)

    params: dict[str, Any] = {"sendUpdates": "all" if attendees else "none"}
    if arguments.get("createMeetLink"):
        params["conferenceDataVersion"] = 1

    client = ProviderClient(context.http, context.settings.tools.calendar_api_url)

    async def insert(credential: Credential) -> ToolResult:
        created = await client.request(
            "POST",
            f"/calendars/{quote(calendar_id, safe='')}/events",
            access_token=credential.access_token,
            params=params,
            json=event,
        )
        return text_result(format_event(created, attendees))

    return await call_provider(context, TOOL, insert, "create calendar event")
