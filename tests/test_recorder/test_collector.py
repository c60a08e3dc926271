"""
StepCollector / coalesce_fills のユニットテスト

テスト対象:
  - coalesce_fills: 同一セレクタへの連続した fill の集約
  - StepCollector: チャネル購読、保留中の注釈・アサーションの付与、TestCase 化
"""

from __future__ import annotations

from pagecraft.messaging import MessageChannel, RecordedStep
from pagecraft.model.schema import Step, StepAssertion
from pagecraft.recorder import StepCollector, coalesce_fills


def _fill(selector: str, value: str, **extra) -> Step:
    return Step(action="fill", selector=selector, value=value, **extra)


def _click(selector: str) -> Step:
    return Step(action="click", selector=selector)


# ===========================================================================
# テスト: coalesce_fills
# ===========================================================================

class TestCoalesceFills:
    """coalesce_fills のテスト。"""

    def test_consecutive_fills_keep_last_value(self) -> None:
        """連続した fill が最後の値の 1 ステップになること。"""
        steps = [_fill("#a", "h"), _fill("#a", "he"), _fill("#a", "hello")]
        result = coalesce_fills(steps)
        assert [s.value for s in result] == ["hello"]

    def test_interleaved_fills_are_kept(self) -> None:
        """間に別のステップを挟む fill は集約されないこと。"""
        steps = [_fill("#a", "1"), _click("#b"), _fill("#a", "2"), _fill("#c", "3")]
        result = coalesce_fills(steps)
        assert [(s.action, s.selector, s.value) for s in result] == [
            ("fill", "#a", "1"),
            ("click", "#b", None),
            ("fill", "#a", "2"),
            ("fill", "#c", "3"),
        ]

    def test_metadata_is_carried_over(self) -> None:
        """先行 fill の注釈・アサーションが集約後のステップに残ること。"""
        visible = StepAssertion(type="toBeVisible")
        text = StepAssertion(type="toHaveText", expected="x")
        steps = [
            _fill("#a", "1", annotations=["入力"], assertions=[visible]),
            _fill("#a", "12", annotations=["入力", "確定"], assertions=[text]),
        ]

        merged = coalesce_fills(steps)[0]
        assert merged.value == "12"
        assert merged.annotations == ["入力", "確定"]
        assert merged.assertions == [visible, text]

    def test_input_is_not_modified(self) -> None:
        """入力のリストが変更されないこと。"""
        steps = [_fill("#a", "1"), _fill("#a", "2")]
        coalesce_fills(steps)
        assert len(steps) == 2

    def test_empty(self) -> None:
        """空のリストで空のリストが返ること。"""
        assert coalesce_fills([]) == []


# ===========================================================================
# テスト: StepCollector
# ===========================================================================

class TestStepCollector:
    """StepCollector のテスト。"""

    def test_attach_receives_steps(self) -> None:
        """チャネルに接続すると RECORDED_STEP を受信すること。"""
        channel = MessageChannel()
        collector = StepCollector()
        collector.attach(channel)

        channel.post(RecordedStep(step=_click("#go")))
        assert [s.selector for s in collector.steps] == ["#go"]

    def test_detach_stops_receiving(self) -> None:
        """detach() 後は受信しないこと。"""
        channel = MessageChannel()
        collector = StepCollector()
        collector.attach(channel)
        collector.detach()

        channel.post(RecordedStep(step=_click("#go")))
        assert collector.steps == []

    def test_attach_twice_does_not_duplicate(self) -> None:
        """attach() を繰り返しても二重に受信しないこと。"""
        channel = MessageChannel()
        collector = StepCollector()
        collector.attach(channel)
        collector.attach(channel)

        channel.post(RecordedStep(step=_click("#go")))
        assert len(collector.steps) == 1

    def test_pending_metadata_applies_to_next_step_only(self) -> None:
        """保留中の注釈・アサーションが次のステップにのみ付与されること。"""
        collector = StepCollector()
        assertion = StepAssertion(type="toBeEnabled")
        collector.set_pending_metadata(annotations=["送信"], assertions=[assertion])

        collector.handle(RecordedStep(step=_click("#submit")))
        collector.handle(RecordedStep(step=_click("#next")))

        first, second = collector.steps
        assert first.annotations == ["送信"]
        assert first.assertions == [assertion]
        assert second.annotations == []
        assert second.assertions == []

    def test_steps_returns_copy(self) -> None:
        """steps プロパティの変更が内部状態に影響しないこと。"""
        collector = StepCollector()
        collector.handle(RecordedStep(step=_click("#go")))
        collector.steps.clear()
        assert len(collector.steps) == 1

    def test_to_test_case_coalesces(self) -> None:
        """to_test_case() が集約済みのステップで TestCase を生成すること。"""
        collector = StepCollector()
        for value in ("a", "al", "alice"):
            collector.handle(RecordedStep(step=_fill("#user", value)))
        collector.handle(RecordedStep(step=_click("#login")))

        case = collector.to_test_case("ログイン", data=[{"user": "alice"}])
        assert case.name == "ログイン"
        assert [(s.action, s.value) for s in case.steps] == [("fill", "alice"), ("click", None)]
        assert case.data == [{"user": "alice"}]
        assert len(collector.steps) == 4

    def test_clear(self) -> None:
        """clear() でステップと保留中のメタデータが破棄されること。"""
        collector = StepCollector()
        collector.set_pending_metadata(annotations=["x"])
        collector.handle(RecordedStep(step=_click("#go")))
        collector.set_pending_metadata(annotations=["y"])

        collector.clear()
        collector.handle(RecordedStep(step=_click("#go")))
        assert collector.steps[0].annotations == []
