"""
Messaging のユニットテスト

テスト対象:
  - メッセージモデルの to_wire / parse_message
  - MessageChannel: on / post / handle / request / drain
"""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from pagecraft.errors import UnhandledMessageError
from pagecraft.messaging import (
    DetectElements,
    MessageChannel,
    RecordedStep,
    ReplayComplete,
    ReplayProgress,
    ReplaySteps,
    StartRecording,
    parse_message,
)
from pagecraft.model.schema import Step


# ===========================================================================
# テスト: メッセージモデル
# ===========================================================================

class TestMessages:
    """メッセージモデルのテスト。"""

    def test_to_wire_uses_aliases(self) -> None:
        """送信形式が camelCase キーになり None が省略されること。"""
        wire = ReplayProgress(step_index=2, status="failed", error="boom").to_wire()
        assert wire == {"type": "REPLAY_PROGRESS", "stepIndex": 2, "status": "failed", "error": "boom"}
        assert "error" not in ReplayProgress(step_index=0, status="running").to_wire()

    def test_parse_start_recording(self) -> None:
        """camelCase の受信データから StartRecording が生成されること。"""
        message = parse_message(
            {"type": "START_RECORDING", "pageName": "LoginPage", "testName": "LoginTest", "testCaseName": "ok"}
        )
        assert isinstance(message, StartRecording)
        assert message.page_name == "LoginPage"
        assert message.test_case_name == "ok"

    def test_parse_replay_steps(self) -> None:
        """ステップ列が Step モデルとして復元されること。"""
        message = parse_message(
            {"type": "REPLAY_STEPS", "steps": [{"action": "click", "selector": "#go"}]}
        )
        assert isinstance(message, ReplaySteps)
        assert message.steps[0] == Step(action="click", selector="#go", timestamp=message.steps[0].timestamp)

    def test_parse_recorded_step_round_trip(self) -> None:
        """to_wire の出力を parse_message で復元できること。"""
        original = RecordedStep(step=Step(action="fill", selector="#q", value="x"), page_name="SearchPage")
        restored = parse_message(original.to_wire())
        assert restored == original

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "UNKNOWN"},
            {"type": "START_RECORDING", "pageName": "p"},
            {"type": "REPLAY_PROGRESS", "stepIndex": 0, "status": "paused"},
            {},
        ],
    )
    def test_parse_invalid(self, data: dict) -> None:
        """未知の種別や不正なフィールドで ValidationError が送出されること。"""
        with pytest.raises(ValidationError):
            parse_message(data)


# ===========================================================================
# テスト: post / on
# ===========================================================================

class TestPost:
    """MessageChannel.post のテスト。"""

    def test_delivers_to_all_subscribers(self) -> None:
        """同じ種別の購読者全員に配信されること。"""
        channel = MessageChannel()
        first, second, other = (MagicMock(return_value=None) for _ in range(3))
        channel.on("DETECT_ELEMENTS", first)
        channel.on("DETECT_ELEMENTS", second)
        channel.on("STOP_RECORDING", other)

        message = DetectElements()
        channel.post(message)

        first.assert_called_once_with(message)
        second.assert_called_once_with(message)
        other.assert_not_called()

    def test_off(self) -> None:
        """on の戻り値で購読を解除できること。"""
        channel = MessageChannel()
        handler = MagicMock()
        off = channel.on("DETECT_ELEMENTS", handler)
        off()
        off()

        channel.post(DetectElements())
        handler.assert_not_called()

    def test_handler_error_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """購読者の例外がログに記録され、後続の購読者に配信されること。"""
        channel = MessageChannel()
        failing = MagicMock(side_effect=RuntimeError("boom"))
        after = MagicMock(return_value=None)
        channel.on("DETECT_ELEMENTS", failing)
        channel.on("DETECT_ELEMENTS", after)

        with caplog.at_level(logging.ERROR, logger="pagecraft.messaging"):
            channel.post(DetectElements())

        after.assert_called_once()
        assert "DETECT_ELEMENTS" in caplog.text

    def test_async_subscriber_and_drain(self) -> None:
        """コルーチンの購読者がタスクとして実行され drain で完了を待てること。"""
        channel = MessageChannel()
        received: list[int] = []

        async def _handler(message: ReplayComplete) -> None:
            await asyncio.sleep(0)
            received.append(message.total)

        channel.on("REPLAY_COMPLETE", _handler)

        async def _run() -> None:
            channel.post(ReplayComplete(total=3))
            assert received == []
            await channel.drain()

        asyncio.run(_run())
        assert received == [3]

    def test_async_subscriber_error_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """コルーチンの購読者の例外がログに記録され drain が完了すること。"""
        channel = MessageChannel()

        async def _failing(message: ReplayComplete) -> None:
            raise RuntimeError("async boom")

        channel.on("REPLAY_COMPLETE", _failing)

        async def _run() -> None:
            channel.post(ReplayComplete(total=1))
            await channel.drain()

        with caplog.at_level(logging.ERROR, logger="pagecraft.messaging"):
            asyncio.run(_run())

        assert "REPLAY_COMPLETE" in caplog.text
        assert "async boom" in caplog.text


# ===========================================================================
# テスト: request / handle
# ===========================================================================

class TestRequest:
    """MessageChannel.request のテスト。"""

    def test_sync_responder(self) -> None:
        """同期ハンドラの戻り値が応答になること。"""
        channel = MessageChannel()
        channel.handle("DETECT_ELEMENTS", lambda message: ["a", "b"])
        assert asyncio.run(channel.request(DetectElements())) == ["a", "b"]

    def test_async_responder(self) -> None:
        """コルーチンハンドラの結果が待機されて応答になること。"""
        channel = MessageChannel()
        responder = AsyncMock(return_value="ok")
        channel.handle("DETECT_ELEMENTS", responder)

        assert asyncio.run(channel.request(DetectElements())) == "ok"
        responder.assert_awaited_once()

    def test_last_registration_wins(self) -> None:
        """同じ種別に後から登録したハンドラが使われること。"""
        channel = MessageChannel()
        channel.handle("DETECT_ELEMENTS", lambda message: "first")
        channel.handle("DETECT_ELEMENTS", lambda message: "second")
        assert asyncio.run(channel.request(DetectElements())) == "second"

    def test_unhandled(self) -> None:
        """ハンドラがない種別で UnhandledMessageError が送出されること。"""
        with pytest.raises(UnhandledMessageError) as exc_info:
            asyncio.run(MessageChannel().request(DetectElements()))
        assert exc_info.value.message_type == "DETECT_ELEMENTS"
