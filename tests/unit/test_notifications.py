"""Unit tests for the Telegram notifier."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from hf_monitor.config import TelegramConfig
from hf_monitor.models import AlertLevel
from hf_monitor.notifications.telegram import TelegramNotifier


def _mock_session(*statuses: int, headers: dict[str, str] | None = None) -> AsyncMock:
    """aiohttp session double whose post() yields ``statuses`` in order."""
    responses = []
    for status in statuses:
        mock_response = AsyncMock()
        mock_response.status = status
        mock_response.headers = headers or {}
        mock_response.__aenter__ = AsyncMock(return_value=mock_response)
        mock_response.__aexit__ = AsyncMock(return_value=None)
        responses.append(mock_response)

    mock_session = AsyncMock()
    mock_session.post = MagicMock(side_effect=responses)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


@pytest.fixture()
def telegram_notifier() -> TelegramNotifier:
    return TelegramNotifier(
        TelegramConfig(
            enabled=True,
            alert_bot_token="alert-tok",
            log_bot_token="log-tok",
            chat_id="12345",
            max_retries=3,
        )
    )


@pytest.fixture()
def telegram_notifier_unconfigured() -> TelegramNotifier:
    return TelegramNotifier(
        TelegramConfig(enabled=True, alert_bot_token="", log_bot_token="", chat_id="")
    )


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_send_alert_success(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _mock_session(200)

        with patch("hf_monitor.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("hf_monitor.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send(AlertLevel.CRITICAL, "test alert")

        assert result is True
        url = mock_session.post.call_args.args[0]
        payload = mock_session.post.call_args.kwargs["json"]
        assert "botalert-tok/sendMessage" in url
        assert payload["chat_id"] == "12345"
        assert payload["parse_mode"] == "HTML"
        assert payload["disable_notification"] is False
        assert payload["text"].startswith("[")
        assert payload["text"].endswith("] test alert")

    @pytest.mark.asyncio
    async def test_info_goes_silently_to_log_bot(
        self, telegram_notifier: TelegramNotifier
    ) -> None:
        mock_session = _mock_session(200)

        with patch("hf_monitor.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("hf_monitor.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send(AlertLevel.INFO, "report")

        assert result is True
        assert "botlog-tok/sendMessage" in mock_session.post.call_args.args[0]
        assert mock_session.post.call_args.kwargs["json"]["disable_notification"] is True

    @pytest.mark.asyncio
    async def test_info_falls_back_to_alert_bot(self) -> None:
        notifier = TelegramNotifier(
            TelegramConfig(enabled=True, alert_bot_token="alert-tok", chat_id="1")
        )
        mock_session = _mock_session(200)

        with patch("hf_monitor.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("hf_monitor.notifications.telegram.aiohttp.TCPConnector"):
                assert await notifier.send(AlertLevel.INFO, "report") is True

        assert "botalert-tok/sendMessage" in mock_session.post.call_args.args[0]

    @pytest.mark.asyncio
    async def test_retries_then_gives_up(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _mock_session(500, 500, 500, 500)
        sleep = AsyncMock()

        with patch("hf_monitor.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("hf_monitor.notifications.telegram.aiohttp.TCPConnector"):
                with patch("hf_monitor.notifications.telegram.asyncio.sleep", sleep):
                    result = await telegram_notifier.send(AlertLevel.WARNING, "test")

        assert result is False
        assert mock_session.post.call_count == 4
        assert [c.args[0] for c in sleep.await_args_list] == [1, 2, 4]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(
        self, telegram_notifier: TelegramNotifier
    ) -> None:
        mock_session = _mock_session(502, 200)
        sleep = AsyncMock()

        with patch("hf_monitor.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("hf_monitor.notifications.telegram.aiohttp.TCPConnector"):
                with patch("hf_monitor.notifications.telegram.asyncio.sleep", sleep):
                    result = await telegram_notifier.send(AlertLevel.WARNING, "test")

        assert result is True
        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(
        self, telegram_notifier: TelegramNotifier
    ) -> None:
        mock_session = _mock_session(429, 200, headers={"Retry-After": "7"})
        sleep = AsyncMock()

        with patch("hf_monitor.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("hf_monitor.notifications.telegram.aiohttp.TCPConnector"):
                with patch("hf_monitor.notifications.telegram.asyncio.sleep", sleep):
                    result = await telegram_notifier.send(AlertLevel.CRITICAL, "test")

        assert result is True
        sleep.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_rate_limit_default_delay(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _mock_session(429, 200)
        sleep = AsyncMock()

        with patch("hf_monitor.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("hf_monitor.notifications.telegram.aiohttp.TCPConnector"):
                with patch("hf_monitor.notifications.telegram.asyncio.sleep", sleep):
                    await telegram_notifier.send(AlertLevel.CRITICAL, "test")

        sleep.assert_awaited_once_with(30)

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self, telegram_notifier: TelegramNotifier) -> None:
        sleep = AsyncMock()

        with patch(
            "hf_monitor.notifications.telegram.aiohttp.ClientSession",
            side_effect=ConnectionError("network down"),
        ):
            with patch("hf_monitor.notifications.telegram.aiohttp.TCPConnector"):
                with patch("hf_monitor.notifications.telegram.asyncio.sleep", sleep):
                    result = await telegram_notifier.send(AlertLevel.ERROR, "test")

        assert result is False
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_html_special_characters_are_escaped(
        self, telegram_notifier: TelegramNotifier
    ) -> None:
        mock_session = _mock_session(200)

        with patch("hf_monitor.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("hf_monitor.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send(
                    AlertLevel.ERROR, "HTTP 502 - <html>Bad Gateway</html> & retry"
                )

        assert result is True
        text = mock_session.post.call_args.kwargs["json"]["text"]
        assert text.endswith("] HTTP 502 - &lt;html&gt;Bad Gateway&lt;/html&gt; &amp; retry")
        assert "<" not in text

    @pytest.mark.asyncio
    async def test_unconfigured_returns_false(
        self, telegram_notifier_unconfigured: TelegramNotifier
    ) -> None:
        result = await telegram_notifier_unconfigured.send(AlertLevel.CRITICAL, "test")
        assert result is False

        result = await telegram_notifier_unconfigured.send(AlertLevel.INFO, "test")
        assert result is False
