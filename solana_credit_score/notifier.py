from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import httpx


DISCORD_MAX_CONTENT = 2000


class Notifier:
    """Posts a rendered ranking to the configured chat webhooks."""

    def __init__(
        self,
        discord_webhook: Optional[str] = None,
        slack_webhook: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._discord_webhook = discord_webhook
        self._slack_webhook = slack_webhook
        self._timeout = timeout
        self._transport = transport
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def is_empty(self) -> bool:
        return not (self._discord_webhook or self._slack_webhook)

    def _targets(self, message: str) -> List[Tuple[str, str, dict]]:
        targets: List[Tuple[str, str, dict]] = []
        if self._discord_webhook:
            content = message
            if len(content) > DISCORD_MAX_CONTENT:
                content = content[: DISCORD_MAX_CONTENT - 6] + "...```"
            targets.append(("discord", self._discord_webhook, {"content": content}))
        if self._slack_webhook:
            targets.append(("slack", self._slack_webhook, {"text": message}))
        return targets

    async def send(self, message: str) -> int:
        """Deliver ``message`` to every webhook; returns how many accepted it."""
        if self.is_empty:
            return 0
        delivered = 0
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for name, url, body in self._targets(message):
                try:
                    response = await client.post(url, json=body)
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    self.logger.warning("Failed to notify %s: %s", name, exc)
                    continue
                delivered += 1
        return delivered
