"""
StepRecorder — ユーザー操作のステップ記録

イベントソース（Document または PlaywrightEventBridge）の click / input / change を
キャプチャフェーズで購読し、操作ごとに Step を生成してメッセージチャネルへ送信する。

状態遷移: IDLE → RECORDING → IDLE（start() / stop() による明示的な切り替えのみ）

記録ルール:
  - click: 記録用オーバーレイ内の要素は無視する
  - input: 入力イベントごとに fill ステップを送信する（間引きなし）
  - change: 対象が <select> の場合のみ select ステップを送信する

同じ要素への連続した fill の集約は受信側（StepCollector）で行う。
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from lxml.html import HtmlElement

from ..dom.document import DomEvent, EventSource, Subscription, element_value
from ..engine.classifier import classify
from ..engine.naming import derive_name
from ..engine.selector import SelectorEngine
from ..messaging import MessageChannel, RecordedStep
from ..model.schema import ElementKind, Step

logger = logging.getLogger(__name__)

OVERLAY_ID = "pagecraft-overlay"


class RecorderState(enum.Enum):
    """レコーダーの状態。"""

    IDLE = "idle"
    RECORDING = "recording"


@dataclass(frozen=True)
class RecordingTarget:
    """記録先（ページ・テストスペック・テストケース）。

    Attributes:
        page_name: ページオブジェクト名
        test_name: テストスペック名
        test_case_name: テストケース名
    """

    page_name: Optional[str] = None
    test_name: Optional[str] = None
    test_case_name: Optional[str] = None


class StepRecorder:
    """操作を Step として記録するレコーダー。

    使用例::

        recorder = StepRecorder(document, channel)
        recorder.start(RecordingTarget(page_name="LoginPage"))
        ...
        recorder.stop()
    """

    def __init__(
        self,
        source: EventSource,
        channel: MessageChannel,
        overlay_id: str = OVERLAY_ID,
    ) -> None:
        self._source = source
        self._channel = channel
        self._overlay_id = overlay_id
        self._state = RecorderState.IDLE
        self._subscription: Optional[Subscription] = None
        self._target = RecordingTarget()
        self._step_count = 0

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def step_count(self) -> int:
        """現在の記録セッションで送信したステップ数。"""
        return self._step_count

    # -------------------------------------------------------------------
    # 状態遷移
    # -------------------------------------------------------------------

    def start(self, target: Optional[RecordingTarget] = None) -> None:
        """記録を開始する。記録中に呼び出した場合は何もしない。"""
        if self._state is RecorderState.RECORDING:
            logger.warning("既に記録中です")
            return

        self._target = target or RecordingTarget()
        self._step_count = 0
        self._subscription = self._source.subscribe(
            {
                "click": self._on_click,
                "input": self._on_input,
                "change": self._on_change,
            },
            capture=True,
        )
        self._state = RecorderState.RECORDING
        logger.info("記録を開始しました: page=%s, test=%s", self._target.page_name, self._target.test_name)

    def stop(self) -> None:
        """記録を停止し、イベント購読を解除する。"""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._state is RecorderState.RECORDING:
            logger.info("記録を停止しました: %d ステップ", self._step_count)
        self._state = RecorderState.IDLE

    # -------------------------------------------------------------------
    # イベントハンドラ
    # -------------------------------------------------------------------

    def _on_click(self, event: DomEvent) -> None:
        if self._in_overlay(event.target):
            return
        self._emit(self._build_step("click", event))

    def _on_input(self, event: DomEvent) -> None:
        if self._in_overlay(event.target):
            return
        self._emit(self._build_step("fill", event, value=element_value(event.target)))

    def _on_change(self, event: DomEvent) -> None:
        if event.target.tag != "select" or self._in_overlay(event.target):
            return
        self._emit(
            self._build_step("select", event, value=element_value(event.target), kind=ElementKind.SELECT)
        )

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _in_overlay(self, element: HtmlElement) -> bool:
        node: Optional[HtmlElement] = element
        while node is not None:
            if node.get("id") == self._overlay_id:
                return True
            node = node.getparent()
        return False

    def _build_step(
        self,
        action: str,
        event: DomEvent,
        value: Optional[str] = None,
        kind: Optional[ElementKind] = None,
    ) -> Step:
        target = event.target
        document = event.document

        candidate = SelectorEngine(document, mode="recorder").best_selector(target)
        element_kind = kind or classify(target, document)
        name = derive_name(target, element_kind, 0)

        return Step(
            action=action,
            selector=candidate.value,
            selector_candidate=candidate,
            value=value,
            element_name=name,
            element_type=element_kind.value,
            page_name=self._target.page_name,
            url=document.url or None,
        )

    def _emit(self, step: Step) -> None:
        self._step_count += 1
        logger.debug("記録: %s %s", step.action, step.selector)
        self._channel.post(
            RecordedStep(
                step=step,
                page_name=self._target.page_name,
                test_name=self._target.test_name,
                test_case_name=self._target.test_case_name,
            )
        )
