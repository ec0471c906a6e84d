"""manage_artifact - per-user code artifacts and documents.

Artifacts live in process memory and are lost on restart.
"""

import asyncio
import secrets
import time
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from shared.models import ToolDescriptor, ToolResult, utcnow
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import error_result, text_result, user_prefix

ArtifactType = Literal["code", "html", "markdown", "react", "svg"]

PREVIEW_LENGTH = 200

TOOL = ToolDescriptor(
    name="manage_artifact",
    description="Create, update, retrieve, or delete code artifacts and documents",
    input_schema=object_schema(
        {
            "action": {
                "type": "string",
                "enum": ["create", "update", "get", "delete", "list"],
                "description": "Action to perform on the artifact"
            },
            "id": {
                "type": "string",
                "description": "Unique identifier for the artifact (required for update, get, delete)"
            },
            "title": {"type": "string", "description": "Title of the artifact (required for create)"},
            "type": {
                "type": "string",
                "enum": ["code", "html", "markdown", "react", "svg"],
                "description": "Type of artifact (required for create)"
            },
            "language": {"type": "string", "description": "Programming language (for code type artifacts)"},
            "content": {
                "type": "string",
                "description": "Content of the artifact (required for create and update)"
            },
        },
        required=["action"]
    )
)


class Artifact(BaseModel):
    """A stored artifact."""
    id: str
    owner_id: str
    title: str
    type: ArtifactType
    content: str
    language: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def preview(self) -> str:
        suffix = "..." if len(self.content) > PREVIEW_LENGTH else ""
        return f"```{self.language or ''}\n{self.content[:PREVIEW_LENGTH]}{suffix}\n```"


class ArtifactNotFound(KeyError):
    pass


class ArtifactPermissionError(PermissionError):
    pass


class ArtifactStore:
    """In-process artifact storage keyed by id."""

    def __init__(self) -> None:
        self._artifacts: dict[str, Artifact] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def new_id() -> str:
        return f"artifact_{int(time.time() * 1000)}_{secrets.token_hex(5)}"

    async def create(
        self,
        owner_id: str,
        title: str,
        artifact_type: ArtifactType,
        content: str,
        language: Optional[str] = None
    ) -> Artifact:
        artifact = Artifact(
            id=self.new_id(),
            owner_id=owner_id,
            title=title,
            type=artifact_type,
            content=content,
            language=language
        )
        async with self._lock:
            self._artifacts[artifact.id] = artifact
        return artifact

    async def get(self, owner_id: str, artifact_id: str) -> Artifact:
        """
        Fetch an artifact owned by ``owner_id``.

        Raises:
            ArtifactNotFound: No artifact with that id
            ArtifactPermissionError: The artifact belongs to another user
        """
        artifact = self._artifacts.get(artifact_id)
        if artifact is None:
            raise ArtifactNotFound(artifact_id)
        if artifact.owner_id != owner_id:
            raise ArtifactPermissionError(artifact_id)
        return artifact

    async def update(self, owner_id: str, artifact_id: str, **changes: Any) -> Artifact:
        async with self._lock:
            artifact = await self.get(owner_id, artifact_id)
            updates = {k: v for k, v in changes.items() if v}
            updated = artifact.model_copy(update={**updates, "updated_at": utcnow()})
            self._artifacts[artifact_id] = updated
        return updated

    async def delete(self, owner_id: str, artifact_id: str) -> Artifact:
        async with self._lock:
            artifact = await self.get(owner_id, artifact_id)
            del self._artifacts[artifact_id]
        return artifact

    async def list_owned(self, owner_id: str) -> list[Artifact]:
        """Artifacts owned by ``owner_id``, most recently updated first."""
        owned = [a for a in self._artifacts.values() if a.owner_id == owner_id]
        return sorted(owned, key=lambda a: a.updated_at, reverse=True)


store = ArtifactStore()


async def _create(arguments: dict[str, Any], user_id: str, prefix: str) -> ToolResult:
    title, artifact_type, content = arguments.get("title"), arguments.get("type"), arguments.get("content")
    if not title or not artifact_type or not content:
        return error_result(f"{prefix}Error: Missing required fields for create action. Need: title, type, content")

    artifact = await store.create(user_id, title, artifact_type, content, arguments.get("language"))
    return text_result(
        f"{prefix}✅ Artifact created successfully!\n\n"
        f"**ID:** {artifact.id}\n"
        f"**Title:** {artifact.title}\n"
        f"**Type:** {artifact.type}\n"
        f"**Language:** {artifact.language or 'N/A'}\n"
        f"**Created:** {artifact.created_at.isoformat()}\n\n"
        f"**Content Preview:**\n{artifact.preview()}"
    )


async def _update(arguments: dict[str, Any], user_id: str, prefix: str) -> ToolResult:
    artifact = await store.update(
        user_id,
        arguments["id"],
        title=arguments.get("title"),
        type=arguments.get("type"),
        language=arguments.get("language"),
        content=arguments.get("content"),
    )
    return text_result(
        f"{prefix}✅ Artifact updated successfully!\n\n"
        f"**ID:** {artifact.id}\n"
        f"**Title:** {artifact.title}\n"
        f"**Type:** {artifact.type}\n"
        f"**Last Updated:** {artifact.updated_at.isoformat()}\n\n"
        f"**Updated Content Preview:**\n{artifact.preview()}"
    )


async def _get(arguments: dict[str, Any], user_id: str, prefix: str) -> ToolResult:
    artifact = await store.get(user_id, arguments["id"])
    return text_result(
        f"{prefix}📄 **Artifact Details**\n\n"
        f"**ID:** {artifact.id}\n"
        f"**Title:** {artifact.title}\n"
        f"**Type:** {artifact.type}\n"
        f"**Language:** {artifact.language or 'N/A'}\n"
        f"**Created:** {artifact.created_at.isoformat()}\n"
        f"**Updated:** {artifact.updated_at.isoformat()}\n"
        f"**Owner:** {artifact.owner_id}\n\n"
        f"**Full Content:**\n```{artifact.language or ''}\n{artifact.content}\n```"
    )


async def _delete(arguments: dict[str, Any], user_id: str, prefix: str) -> ToolResult:
    artifact = await store.delete(user_id, arguments["id"])
    return text_result(f"{prefix}🗑️ Artifact '{artifact.title}' ({artifact.id}) deleted successfully!")


async def _list(arguments: dict[str, Any], user_id: str, prefix: str) -> ToolResult:
    artifacts = await store.list_owned(user_id)
    if not artifacts:
        return text_result(f"{prefix}📋 No artifacts found.")

    entries = []
    for artifact in artifacts:
        language = f" ({artifact.language})" if artifact.language else ""
        entries.append(
            f"• **{artifact.title}** ({artifact.id})\n"
            f"  Type: {artifact.type}{language}\n"
            f"  Updated: {artifact.updated_at.isoformat()}\n"
        )
    return text_result(f"{prefix}📋 **Your Artifacts ({len(artifacts)}):**\n\n" + "\n".join(entries))


ACTIONS = {
    "create": _create,
    "update": _update,
    "get": _get,
    "delete": _delete,
    "list": _list,
}


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    prefix = user_prefix(context)
    action = arguments.get("action")

    run = ACTIONS.get(action)
    if run is None:
        return error_result(
            f"{prefix}Error: Unknown action '{action}'. Supported actions: {', '.join(ACTIONS)}"
        )

    if action in ("update", "get", "delete") and not arguments.get("id"):
        return error_result(f"{prefix}Error: Artifact ID is required for {action} action")

    try:
        return await run(arguments, context.user_id, prefix)
    except ArtifactNotFound:
        return error_result(f"{prefix}Error: Artifact with ID '{arguments.get('id')}' not found")
    except ArtifactPermissionError:
        return error_result(f"{prefix}Error: You don't have permission to {action} this artifact")
