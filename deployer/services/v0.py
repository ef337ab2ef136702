"""v0 Platform API code generator.

Creates a private chat in synchronous response mode, so a single HTTP call
returns once generation has finished.
"""

from typing import Any

import httpx

from deployer.config import Settings, get_settings
from deployer.models.generation import GeneratedFile, GenerationResult
from deployer.utils.logging import get_logger


class V0ResponseError(Exception):
    """The v0 API answered with something we cannot use."""


class V0CodeGenerator:
    """Generates app code from a compiled prompt using v0."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self.logger = get_logger("v0")

    async def generate(self, prompt: str, app_id: str) -> GenerationResult:
        api_key = self.settings.require_v0_api_key()

        self.logger.info("v0.generation.started", app_id=app_id, prompt_length=len(prompt))

        async with httpx.AsyncClient(
            base_url=self.settings.v0_api_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=self.settings.generation_timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.post(
                "/chats",
                json={
                    "message": prompt,
                    "responseMode": "sync",
                    "chatPrivacy": "private",
                },
            )

        if response.is_error:
            raise V0ResponseError(
                f"v0 API returned {response.status_code}: {response.text[:500]}"
            )

        result = parse_chat_detail(response.json())
        self.logger.info(
            "v0.generation.completed",
            app_id=app_id,
            chat_id=result.chat_id,
            file_count=len(result.files),
            failed=result.failed,
        )
        return result


def parse_chat_detail(chat: Any) -> GenerationResult:
    """Convert a v0 ChatDetail payload into a GenerationResult."""
    if not isinstance(chat, dict) or "id" not in chat:
        raise V0ResponseError("v0 API returned invalid response")

    latest = chat.get("latestVersion")
    if not latest:
        raise V0ResponseError("v0 generation completed but no version was created")

    files = [
        GeneratedFile(path=f["name"], content=f.get("content", ""))
        for f in latest.get("files") or []
    ]
    return GenerationResult(
        files=files,
        failed=latest.get("status") == "failed",
        chat_id=chat["id"],
    )
