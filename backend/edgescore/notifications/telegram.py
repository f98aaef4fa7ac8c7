import logging
import re
from collections.abc import Sequence
from datetime import UTC, datetime

import httpx

from edgescore.core.config import get_settings
from edgescore.scoring.engine import ScoredMatch

settings = get_settings()
logger = logging.getLogger(__name__)

_MARKDOWN_V2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


def escape_markdown_v2(text: str) -> str:
    return _MARKDOWN_V2_SPECIAL.sub(r"\\\1", text)


def format_pick(pick: ScoredMatch, index: int) -> str:
    marker = "\U0001F525" if pick.score >= 80 else "⭐" if pick.score >= 65 else "\U0001F4CA"
    return "\n".join(
        [
            f"{marker} *\\#{index + 1} \\- Score: {pick.score}/100*",
            f"{escape_markdown_v2(pick.home_team)} vs {escape_markdown_v2(pick.away_team)}",
            f"Pick: *{escape_markdown_v2(pick.recommended_team)}* \\({escape_markdown_v2(pick.pick_type)}\\)",
            escape_markdown_v2(pick.analysis or ""),
        ]
    )


def render_message(picks: Sequence[ScoredMatch], generated_at: datetime | None = None) -> str:
    generated_at = generated_at or datetime.now(UTC)
    header = "\U0001F3AF *EdgeScore \\- Top Picks*\n"
    body = "\n\n".join(format_pick(pick, index) for index, pick in enumerate(picks))
    footer = f"\n\n_Generated at {escape_markdown_v2(generated_at.strftime('%H:%M UTC'))}_"
    return header + body + footer


class TelegramNotifier:
    def __init__(
        self,
        *,
        bot_token: str | None = None,
        chat_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.bot_token = settings.telegram_bot_token if bot_token is None else bot_token
        self.chat_id = settings.telegram_chat_id if chat_id is None else chat_id
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.bot_token.strip() and self.chat_id.strip())

    async def send_picks(self, picks: Sequence[ScoredMatch]) -> bool:
        if not self.configured or not picks:
            return False

        url = f"{settings.telegram_api_base_url}/bot{self.bot_token}/sendMessage"
        payload = {"chat_id": self.chat_id, "text": render_message(picks), "parse_mode": "MarkdownV2"}
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            # The exception text embeds the request URL, which carries the bot token.
            logger.error("Telegram send failed", extra={"error_type": type(exc).__name__, "picks": len(picks)})
            return False

        logger.info("Telegram picks sent", extra={"picks": len(picks)})
        return True
