import json
from datetime import UTC, datetime

import httpx

from edgescore.notifications.telegram import TelegramNotifier, escape_markdown_v2, render_message
from edgescore.scoring.engine import ScoredMatch


def _pick(score: int = 82, recommendation: str = "home") -> ScoredMatch:
    return ScoredMatch(
        match_id=7,
        date="2026-02-16",
        sport="nba",
        home_team="Los Angeles Lakers",
        away_team="Boston Celtics",
        game_time="19:30",
        recommendation=recommendation,
        pick_type="moneyline",
        score=score,
        source_agreement=14,
        confidence_score=10,
        margin_score=0,
        value_score=7,
        source_accuracy=0,
        alignment_score=0,
        form_score=0,
        h2h_score=0,
        home_advantage=0,
        analysis="2/2 sources agree (100%).",
        estimated_prob=61.0,
    )


def test_escape_markdown_v2() -> None:
    assert escape_markdown_v2("St. Louis (A-B)!") == "St\\. Louis \\(A\\-B\\)\\!"
    assert escape_markdown_v2("plain text") == "plain text"


def test_render_message_lists_each_pick() -> None:
    message = render_message([_pick(), _pick(score=70, recommendation="away")], datetime(2026, 2, 16, 18, 5, tzinfo=UTC))

    assert message.startswith("\U0001F3AF *EdgeScore \\- Top Picks*")
    assert "\U0001F525 *\\#1 \\- Score: 82/100*" in message
    assert "⭐ *\\#2 \\- Score: 70/100*" in message
    assert "Pick: *Los Angeles Lakers* \\(moneyline\\)" in message
    assert "Pick: *Boston Celtics*" in message
    assert message.endswith("_Generated at 18:05 UTC_")


async def test_send_picks_posts_markdown_message() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    notifier = TelegramNotifier(bot_token="123:abc", chat_id="-100", transport=httpx.MockTransport(handler))

    assert await notifier.send_picks([_pick()]) is True
    assert requests[0].url.path == "/bot123:abc/sendMessage"
    body = json.loads(requests[0].content)
    assert body["chat_id"] == "-100"
    assert body["parse_mode"] == "MarkdownV2"


async def test_send_failure_returns_false() -> None:
    notifier = TelegramNotifier(
        bot_token="123:abc",
        chat_id="-100",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    assert await notifier.send_picks([_pick()]) is False


async def test_unconfigured_notifier_sends_nothing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    notifier = TelegramNotifier(bot_token="", chat_id="-100", transport=httpx.MockTransport(handler))

    assert notifier.configured is False
    assert await notifier.send_picks([_pick()]) is False
