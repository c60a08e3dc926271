"""
StepCollector — 記録ステップの受信と集約

StepRecorder が送信した RECORDED_STEP メッセージを受信し、
記録済みステップのリストに追加する。

主な機能:
  - 受信時に、直前に入力された注釈・アサーションをステップへ付与
  - coalesce_fills(): 同一セレクタへの連続した fill を最後の値に集約
  - to_test_case(): 集約済みステップから TestCase を生成
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..messaging import MessageChannel, RecordedStep
from ..model.schema import Step, StepAssertion, TestCase

logger = logging.getLogger(__name__)


def coalesce_fills(steps: list[Step]) -> list[Step]:
    """同じセレクタへの連続した fill ステップを最後の 1 つにまとめる。

    間に別のステップを挟む fill はまとめない。順序は保持する。

    Args:
        steps: 記録されたステップ列

    Returns:
        集約後のステップ列（新しいリスト）
    """
    result: list[Step] = []
    for step in steps:
        if (
            step.action == "fill"
            and result
            and result[-1].action == "fill"
            and result[-1].selector == step.selector
        ):
            previous = result[-1]
            # 先行ステップの注釈・アサーションは引き継ぐ
            result[-1] = step.model_copy(
                update={
                    "annotations": previous.annotations + [a for a in step.annotations if a not in previous.annotations],
                    "assertions": previous.assertions + step.assertions,
                }
            )
            continue
        result.append(step)
    return result


class StepCollector:
    """記録ステップの受信者。

    使用例::

        collector = StepCollector()
        collector.attach(channel)
        ...
        test_case = collector.to_test_case("ログイン")
    """

    def __init__(self) -> None:
        self._steps: list[Step] = []
        self._pending_annotations: list[str] = []
        self._pending_assertions: list[StepAssertion] = []
        self._detach: Optional[Callable[[], None]] = None

    @property
    def steps(self) -> list[Step]:
        """受信した生のステップ列（コピー）。"""
        return list(self._steps)

    def attach(self, channel: MessageChannel) -> None:
        """チャネルの RECORDED_STEP を購読する。"""
        self.detach()
        self._detach = channel.on("RECORDED_STEP", self.handle)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def set_pending_metadata(
        self,
        annotations: Optional[list[str]] = None,
        assertions: Optional[list[StepAssertion]] = None,
    ) -> None:
        """次に受信するステップへ付与する注釈・アサーションを設定する。"""
        self._pending_annotations = list(annotations or [])
        self._pending_assertions = list(assertions or [])

    def handle(self, message: RecordedStep) -> None:
        """RECORDED_STEP を受信してステップを追加する。"""
        step = message.step
        if self._pending_annotations or self._pending_assertions:
            step = step.model_copy(
                update={
                    "annotations": step.annotations + self._pending_annotations,
                    "assertions": step.assertions + self._pending_assertions,
                }
            )
            self._pending_annotations = []
            self._pending_assertions = []
        self._steps.append(step)
        logger.debug("ステップを受信しました: #%d %s", len(self._steps), step.action)

    def clear(self) -> None:
        self._steps = []
        self._pending_annotations = []
        self._pending_assertions = []

    def to_test_case(self, name: str, data: Optional[list[dict[str, str]]] = None) -> TestCase:
        """集約済みのステップから TestCase を生成する。"""
        return TestCase(name=name, steps=coalesce_fills(self._steps), data=data)
