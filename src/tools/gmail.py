"""GMAIL_SENDER - send a plain-text email from the user's Gmail account."""

import base64
from email.message import EmailMessage
from typing import Any

from shared.models import Credential, ToolDescriptor, ToolResult
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import ProviderClient, call_provider, error_result, text_result

TOOL = ToolDescriptor(
    name="GMAIL_SENDER",
    description="Send email using Gmail",
    input_schema=object_schema(
        {
            "toMail": {"type": "string", "description": "Recipient email address"},
            "subject": {"type": "string", "description": "Subject of the email"},
            "body": {"type": "string", "description": "Body of the email"},
        },
        required=["toMail", "subject", "body"]
    ),
    auth_provider="google",
    display_name="Gmail",
)


def build_raw_message(to_mail: str, subject: str, body: str) -> str:
    """RFC 2822 message, base64url-encoded without padding as Gmail expects."""
    message = EmailMessage()
    message["To"] = to_mail
    message["Subject"] = subject
    message.set_content(body)
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    to_mail = arguments.get("toMail")
    subject = arguments.get("subject")
    body = arguments.get("body")

    if not to_mail or not subject or not body:
        return error_result("❌ Missing required parameters: toMail, subject, or body.")

    raw = build_raw_message(to_mail, subject, body)
    client = ProviderClient(context.http, context.settings.tools.gmail_api_url)

    async def send(credential: Credential) -> ToolResult:
        data = await client.request(
            "POST",
            "/users/me/messages/send",
            access_token=credential.access_token,
            json={"raw": raw},
        )
        return text_result(f"✅ Email sent to {to_mail}. Gmail Message ID: {data.get('id')}")

    return await call_provider(context, TOOL, send, "send email")
