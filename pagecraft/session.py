"""
Session — 検出・記録・再生のセッション制御

1 つのページに対する操作（要素検出・ステップ記録・再生・スクリーンショット）を
メッセージチャネル経由で受け付け、対応するコンポーネントへ振り分ける。

ライフサイクル: CREATED → ACTIVE → STOPPED → DISPOSED
モード: idle / recording / replaying

記録と再生の排他は呼び出し側の責務とし、
競合する要求を受けた場合は警告をログに出力して処理を継続する。
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Optional

from .core.drivers import ActionDriver
from .core.replay import ReplayEngine, ReplayStepResult
from .dom.document import EventSource
from .engine.detector import ElementDetector
from .errors import SessionStateError
from .messaging import (
    CaptureScreenshot,
    DetectElements,
    MessageChannel,
    ReplaySteps,
    StartRecording,
    StopRecording,
    StopReplay,
)
from .model.schema import ElementDescriptor, TestCase
from .recorder.collector import StepCollector
from .recorder.recorder import RecordingTarget, StepRecorder

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    """セッションのライフサイクル状態。"""

    CREATED = "created"
    ACTIVE = "active"
    STOPPED = "stopped"
    DISPOSED = "disposed"


class SessionMode(str, enum.Enum):
    """セッションの動作モード。"""

    IDLE = "idle"
    RECORDING = "recording"
    REPLAYING = "replaying"


class Session:
    """検出・記録・再生を束ねるセッション。

    チャネル・コレクター・モードをインスタンスが所有する。
    start() で各メッセージの応答ハンドラをチャネルに登録する。

    使用例::

        session = Session(driver, document)
        session.start()
        await session.channel.request(StartRecording(
            page_name="LoginPage", test_name="login", test_case_name="正常系"))
        ...
        test_case = await session.channel.request(StopRecording())
        session.stop()

    Args:
        driver: 操作ドライバー
        source: 記録対象のイベントソース（Document / PlaywrightEventBridge）
        channel: メッセージチャネル（未指定時は新規作成）
        step_delay: 再生時のステップ間待機秒数
        highlight_ms: 再生時の要素ハイライト時間（ミリ秒）
    """

    def __init__(
        self,
        driver: ActionDriver,
        source: EventSource,
        channel: Optional[MessageChannel] = None,
        step_delay: float = 1.0,
        highlight_ms: int = 800,
    ) -> None:
        self._driver = driver
        self._channel = channel or MessageChannel()
        self._collector = StepCollector()
        self._recorder = StepRecorder(source, self._channel)
        self._replay = ReplayEngine(
            driver, self._channel, step_delay=step_delay, highlight_ms=highlight_ms
        )
        self._state = SessionState.CREATED
        self._mode = SessionMode.IDLE
        self._target = RecordingTarget()

    # -------------------------------------------------------------------
    # プロパティ
    # -------------------------------------------------------------------

    @property
    def channel(self) -> MessageChannel:
        return self._channel

    @property
    def collector(self) -> StepCollector:
        return self._collector

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mode(self) -> SessionMode:
        return self._mode

    # -------------------------------------------------------------------
    # ライフサイクル
    # -------------------------------------------------------------------

    def start(self) -> None:
        """セッションを開始し、メッセージハンドラを登録する。

        Raises:
            SessionStateError: CREATED 以外の状態で呼び出した場合
        """
        if self._state is not SessionState.CREATED:
            raise SessionStateError(self._state.value, "start")

        self._collector.attach(self._channel)
        self._channel.handle("DETECT_ELEMENTS", self._on_detect)
        self._channel.handle("START_RECORDING", self._on_start_recording)
        self._channel.handle("STOP_RECORDING", self._on_stop_recording)
        self._channel.handle("REPLAY_STEPS", self._on_replay)
        self._channel.handle("STOP_REPLAY", self._on_stop_replay)
        self._channel.handle("CAPTURE_SCREENSHOT", self._on_capture)
        self._state = SessionState.ACTIVE
        logger.info("セッションを開始しました")

    def stop(self) -> None:
        """記録・再生を停止する。ACTIVE 以外の状態では何もしない。"""
        if self._state is not SessionState.ACTIVE:
            return
        self._recorder.stop()
        self._replay.cancel()
        self._mode = SessionMode.IDLE
        self._state = SessionState.STOPPED
        logger.info("セッションを停止しました")

    def dispose(self) -> None:
        """セッションを破棄する。破棄後は要求を受け付けない。"""
        if self._state is SessionState.DISPOSED:
            return
        self.stop()
        self._collector.detach()
        self._collector.clear()
        self._state = SessionState.DISPOSED
        logger.info("セッションを破棄しました")

    def _require_active(self, operation: str) -> None:
        if self._state is not SessionState.ACTIVE:
            raise SessionStateError(self._state.value, operation)

    # -------------------------------------------------------------------
    # メッセージハンドラ
    # -------------------------------------------------------------------

    async def _on_detect(self, message: DetectElements) -> list[ElementDescriptor]:
        self._require_active(message.type)
        document = await self._driver.snapshot()
        descriptors = ElementDetector(document).detect()
        logger.info("%d 個の要素を検出しました", len(descriptors))
        return descriptors

    def _on_start_recording(self, message: StartRecording) -> None:
        self._require_active(message.type)
        if self._mode is SessionMode.REPLAYING:
            logger.warning("再生中に記録が開始されました")

        self._target = RecordingTarget(
            page_name=message.page_name,
            test_name=message.test_name,
            test_case_name=message.test_case_name,
        )
        self._collector.clear()
        self._recorder.start(self._target)
        self._mode = SessionMode.RECORDING

    def _on_stop_recording(self, message: StopRecording) -> TestCase:
        self._require_active(message.type)
        self._recorder.stop()
        if self._mode is SessionMode.RECORDING:
            self._mode = SessionMode.IDLE
        name = self._target.test_case_name or "recorded"
        return self._collector.to_test_case(name)

    async def _on_replay(self, message: ReplaySteps) -> list[ReplayStepResult]:
        self._require_active(message.type)
        if self._mode is SessionMode.RECORDING:
            logger.warning("記録中に再生が開始されました")

        previous = self._mode
        self._mode = SessionMode.REPLAYING
        try:
            return await self._replay.replay_all(message.steps)
        finally:
            self._mode = previous if previous is SessionMode.RECORDING else SessionMode.IDLE

    def _on_stop_replay(self, message: StopReplay) -> None:
        self._require_active(message.type)
        self._replay.cancel()

    async def _on_capture(self, message: CaptureScreenshot) -> Any:
        self._require_active(message.type)
        return await self._driver.capture_screenshot(message.name or "screenshot")
