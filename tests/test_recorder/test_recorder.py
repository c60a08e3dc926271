"""
StepRecorder のユニットテスト

テスト対象:
  - start() / stop() による状態遷移とイベント購読の解除
  - click / input / change からの Step 生成
  - 記録用オーバーレイ内の操作の無視
  - RECORDED_STEP メッセージに記録先の名前が付与されること
  - 記録したステップを別の Document で再生できること
"""

from __future__ import annotations

import asyncio
import logging

import pytest

from pagecraft.core.drivers import DocumentDriver
from pagecraft.core.replay import ReplayEngine
from pagecraft.dom.document import Document, element_value
from pagecraft.messaging import MessageChannel, RecordedStep
from pagecraft.model.selectors import SelectorKind
from pagecraft.recorder import OVERLAY_ID, RecorderState, RecordingTarget, StepCollector, StepRecorder


def _make_recorder(document: Document) -> tuple[StepRecorder, list[RecordedStep]]:
    """記録メッセージを収集するチャネル付きのレコーダーを生成する。"""
    channel = MessageChannel()
    received: list[RecordedStep] = []
    channel.on("RECORDED_STEP", received.append)
    return StepRecorder(document, channel), received


# ===========================================================================
# テスト: 状態遷移
# ===========================================================================

class TestRecorderState:
    """StepRecorder の状態遷移のテスト。"""

    def test_start_and_stop(self, login_document: Document) -> None:
        """start() で RECORDING、stop() で IDLE になり購読が解除されること。"""
        recorder, _ = _make_recorder(login_document)
        assert recorder.state is RecorderState.IDLE

        recorder.start()
        assert recorder.state is RecorderState.RECORDING
        assert login_document.listener_count == 3

        recorder.stop()
        assert recorder.state is RecorderState.IDLE
        assert login_document.listener_count == 0

    def test_double_start_warns(self, login_document: Document, caplog: pytest.LogCaptureFixture) -> None:
        """記録中の start() が警告のみで二重購読しないこと。"""
        recorder, _ = _make_recorder(login_document)
        recorder.start()

        with caplog.at_level(logging.WARNING, logger="pagecraft.recorder.recorder"):
            recorder.start()
        assert "既に記録中です" in caplog.text
        assert login_document.listener_count == 3

    def test_stop_when_idle_is_noop(self, login_document: Document) -> None:
        """記録していない状態の stop() が何もしないこと。"""
        recorder, _ = _make_recorder(login_document)
        recorder.stop()
        assert recorder.state is RecorderState.IDLE

    def test_no_steps_after_stop(self, login_document: Document) -> None:
        """停止後の操作が記録されないこと。"""
        recorder, received = _make_recorder(login_document)
        recorder.start()
        recorder.stop()

        login_document.dispatch("click", login_document.query("button"))
        assert received == []

    def test_restart_resets_step_count(self, login_document: Document) -> None:
        """再開時にステップ数がリセットされること。"""
        recorder, _ = _make_recorder(login_document)
        recorder.start()
        login_document.dispatch("click", login_document.query("button"))
        assert recorder.step_count == 1

        recorder.stop()
        recorder.start()
        assert recorder.step_count == 0


# ===========================================================================
# テスト: ステップ生成
# ===========================================================================

class TestStepGeneration:
    """イベントからの Step 生成のテスト。"""

    def test_click(self, login_document: Document) -> None:
        """click が最良セレクタ・要素名付きの click ステップになること。"""
        recorder, received = _make_recorder(login_document)
        recorder.start(RecordingTarget(page_name="LoginPage", test_name="login", test_case_name="ok"))

        login_document.dispatch("click", login_document.query("button"))

        assert len(received) == 1
        message = received[0]
        step = message.step
        assert step.action == "click"
        assert step.selector == '[data-testid="login-btn"]'
        assert step.selector_candidate.kind == SelectorKind.DATA_TESTID
        assert step.element_name == "signInButton"
        assert step.element_type == "button"
        assert step.page_name == "LoginPage"
        assert step.url == "http://localhost:3000/login"
        assert (message.page_name, message.test_name, message.test_case_name) == ("LoginPage", "login", "ok")

    def test_input_emits_fill_per_event(self, login_document: Document) -> None:
        """input イベントごとに現在値の fill ステップが送信されること。"""
        recorder, received = _make_recorder(login_document)
        recorder.start()
        username = login_document.query("#username")

        for value in ("a", "al", "alice"):
            username.set("value", value)
            login_document.dispatch("input", username)

        assert [m.step.value for m in received] == ["a", "al", "alice"]
        assert {m.step.selector for m in received} == {"#username"}
        assert received[0].step.element_name == "usernameInput"
        assert recorder.step_count == 3

    def test_change_on_select(self, login_document: Document) -> None:
        """select の change が select ステップになること。"""
        recorder, received = _make_recorder(login_document)
        recorder.start()
        asyncio.run(DocumentDriver(login_document).select(login_document.query("#role"), "admin"))

        assert len(received) == 1
        step = received[0].step
        assert step.action == "select"
        assert step.value == "admin"
        assert step.element_type == "select"

    def test_change_on_input_is_ignored(self, login_document: Document) -> None:
        """select 以外の change が記録されないこと。"""
        recorder, received = _make_recorder(login_document)
        recorder.start()
        asyncio.run(DocumentDriver(login_document).fill(login_document.query("#username"), "bob"))

        assert [m.step.action for m in received] == ["fill"]

    def test_recorder_mode_selector(self) -> None:
        """記録時は text / class 候補を使わず構造パスになること。"""
        doc = Document.from_html('<div><span class="label">Hello</span><span>World</span></div>')
        recorder, received = _make_recorder(doc)
        recorder.start()

        doc.dispatch("click", doc.query("span"))
        assert received[0].step.selector == "html > body > div > span:nth-of-type(1)"

    def test_missing_url_is_none(self) -> None:
        """URL のない文書では url が None になること。"""
        doc = Document.from_html('<button id="go">Go</button>')
        recorder, received = _make_recorder(doc)
        recorder.start()

        doc.dispatch("click", doc.query("#go"))
        assert received[0].step.url is None
        assert received[0].step.page_name is None


# ===========================================================================
# テスト: オーバーレイ
# ===========================================================================

class TestOverlay:
    """記録用オーバーレイの除外のテスト。"""

    def test_overlay_interactions_are_ignored(self) -> None:
        """オーバーレイ内の click / input が記録されないこと。"""
        doc = Document.from_html(
            f'<div id="{OVERLAY_ID}"><button id="stop">Stop</button><input id="note"></div>'
            '<button id="go">Go</button>'
        )
        recorder, received = _make_recorder(doc)
        recorder.start()

        doc.dispatch("click", doc.query("#stop"))
        doc.dispatch("input", doc.query("#note"))
        doc.dispatch("click", doc.query("#go"))

        assert [m.step.element_name for m in received] == ["goButton"]

    def test_overlay_select_change_is_ignored(self) -> None:
        """オーバーレイ内の select の change が記録されないこと。"""
        doc = Document.from_html(
            f'<div id="{OVERLAY_ID}"><select id="speed"><option value="1">1</option>'
            '<option value="2">2</option></select></div>'
            '<select id="size"><option value="s">S</option><option value="m">M</option></select>'
        )
        recorder, received = _make_recorder(doc)
        driver = DocumentDriver(doc)
        recorder.start()

        async def _scenario() -> None:
            await driver.select(doc.query("#speed"), "2")
            await driver.select(doc.query("#size"), "m")

        asyncio.run(_scenario())
        assert [(m.step.action, m.step.value) for m in received] == [("select", "m")]

    def test_custom_overlay_id(self) -> None:
        """overlay_id を変更できること。"""
        doc = Document.from_html('<div id="toolbar"><button id="x">X</button></div>')
        channel = MessageChannel()
        received: list[RecordedStep] = []
        channel.on("RECORDED_STEP", received.append)
        recorder = StepRecorder(doc, channel, overlay_id="toolbar")
        recorder.start()

        doc.dispatch("click", doc.query("#x"))
        assert received == []


# ===========================================================================
# テスト: 記録したステップの再生
# ===========================================================================

_FORM_HTML = """\
<html><body>
<form>
  <button type="button">Go</button>
  <input type="text">
  <select><option value="a">A</option><option value="b">B</option></select>
</form>
</body></html>
"""


class TestRecordThenReplay:
    """記録したステップを別の Document で再生するテスト。"""

    def test_recorded_steps_replay_in_order(self) -> None:
        """click / fill / select の記録が同じ HTML 上で順番に全て成功すること。"""
        recorded_doc = Document.from_html(_FORM_HTML)
        channel = MessageChannel()
        collector = StepCollector()
        collector.attach(channel)
        recorder = StepRecorder(recorded_doc, channel)
        driver = DocumentDriver(recorded_doc)

        async def _record() -> None:
            recorder.start()
            await driver.click(recorded_doc.query("button"))
            await driver.fill(recorded_doc.query("input"), "hello")
            await driver.select(recorded_doc.query("select"), "b")
            recorder.stop()

        asyncio.run(_record())
        steps = collector.steps
        assert [s.action for s in steps] == ["click", "fill", "select"]
        assert steps[0].selector == 'role=button[name="Go"]'

        replay_doc = Document.from_html(_FORM_HTML)
        engine = ReplayEngine(DocumentDriver(replay_doc), step_delay=0, highlight_ms=0)
        results = asyncio.run(engine.replay_all(steps))

        assert [(r.index, r.status) for r in results] == [(0, "success"), (1, "success"), (2, "success")]
        assert element_value(replay_doc.query("input")) == "hello"
        assert element_value(replay_doc.query("select")) == "b"
