"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

pagecraft コマンドとして以下のサブコマンドを提供する:
  - detect: ページ（URL / HTML ファイル）の操作可能要素を一覧表示
  - record: ブラウザ操作をステップとして記録
  - replay: 記録したステップを再生
  - run: プロジェクトのテストスペックを実行してレポートを出力
  - export: プロジェクトをテストコード一式として書き出し
  - results: 実行結果の履歴を表示・削除
  - project create / list / delete / migrate: プロジェクト管理
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Optional

import typer

from .config import AppConfig, apply_overrides, load_config_from_env

if TYPE_CHECKING:
    from playwright.async_api import Page

    from .model.schema import ElementDescriptor, Step, TestCase
    from .recorder.recorder import RecordingTarget
    from .storage.store import YamlFileStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "pagecraft — ページ要素の検出・操作記録・再生・テストコード生成ツール\n\n"
        "基本の流れ:\n"
        "  1. pagecraft project create MyApp   プロジェクトを作成\n"
        "  2. pagecraft record URL --project MyApp --test login   操作を記録\n"
        "  3. pagecraft run MyApp login --url URL   テストを実行\n"
        "  4. pagecraft export MyApp -o out/   テストコードを書き出し\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)

project_app = typer.Typer(
    help="プロジェクト管理サブコマンド",
    no_args_is_help=True,
)
app.add_typer(project_app, name="project")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="デバッグログを出力する"),
) -> None:
    """ログ出力を設定する。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s - %(message)s",
    )


# ---------------------------------------------------------------------------
# 共通ヘルパー
# ---------------------------------------------------------------------------

def _open_store(config: AppConfig) -> YamlFileStore:
    from .storage import YamlFileStore

    return YamlFileStore(Path(config.store_path))


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"エラー: {exc}", err=True)
    return typer.Exit(code=1)


@contextlib.asynccontextmanager
async def _launch_page(config: AppConfig) -> AsyncIterator[Page]:
    """設定に従って Chromium を起動し、新しいページを返す。"""
    from playwright.async_api import async_playwright

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=not config.headed)
        try:
            context = await browser.new_context(viewport=config.viewport)
            yield await context.new_page()
        finally:
            await browser.close()


def _load_steps(path: Path) -> list[Step]:
    """YAML ファイルからステップ列を読み込む。

    トップレベルはステップのリスト、または steps キーを持つマッピング。
    """
    from ruamel.yaml import YAML

    from .model.schema import Step

    with open(path, "r", encoding="utf-8") as f:
        data = YAML(typ="safe").load(f)
    if isinstance(data, dict):
        data = data.get("steps")
    if not isinstance(data, list):
        raise ValueError(f"ステップのリストが見つかりません: {path}")
    return [Step.model_validate(item) for item in data]


def _dump_steps(steps: list[Step], path: Path) -> None:
    from ruamel.yaml import YAML

    yaml = YAML()
    yaml.default_flow_style = False
    yaml.allow_unicode = True
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump({"steps": [s.model_dump(mode="json", exclude_none=True) for s in steps]}, f)


# ---------------------------------------------------------------------------
# detect コマンド
# ---------------------------------------------------------------------------

@app.command()
def detect(
    target: str = typer.Argument(..., help="URL または HTML ファイルのパス"),
    group: bool = typer.Option(False, "--group", "-g", help="セクションごとにまとめて表示する"),
    save_page: Optional[str] = typer.Option(
        None, "--save-page", help="検出結果をこの名前のページオブジェクトとして保存する",
    ),
    project: Optional[str] = typer.Option(
        None, "--project", "-p", help="保存先プロジェクト（ID または名前。省略時は現在のプロジェクト）",
    ),
    headed: Optional[bool] = typer.Option(None, "--headed/--headless", help="ブラウザ表示モード"),
) -> None:
    """ページの操作可能要素を検出して一覧表示する。"""
    from .dom.document import Document
    from .engine.detector import ElementDetector

    config = apply_overrides(load_config_from_env(), headed=headed)
    try:
        path = Path(target)
        if path.is_file():
            document = Document.from_html(path.read_text(encoding="utf-8"), url=path.resolve().as_uri())
        else:
            document = asyncio.run(_capture_document(target, config))

        detector = ElementDetector(document)
        if group:
            for section, descriptors in detector.group_by_section().items():
                typer.echo(f"[{section}]")
                for descriptor in descriptors:
                    typer.echo(f"  {_format_descriptor(descriptor)}")
        else:
            descriptors = detector.detect()
            for descriptor in descriptors:
                typer.echo(_format_descriptor(descriptor))
            typer.echo(f"\n{len(descriptors)} 個の要素を検出しました")

        if save_page:
            _save_detected_page(config, project, save_page, document.url, detector.detect())
            typer.echo(f"ページオブジェクトを保存しました: {save_page}")
    except Exception as exc:
        raise _fail(exc)


async def _capture_document(url: str, config: AppConfig):
    from .dom.snapshot import PageSnapshotter

    async with _launch_page(config) as page:
        await page.goto(url)
        await page.wait_for_load_state("domcontentloaded")
        return await PageSnapshotter(page).capture()


def _format_descriptor(descriptor: ElementDescriptor) -> str:
    return f"{descriptor.name:<30} {descriptor.type.value:<10} {descriptor.selector}"


def _save_detected_page(
    config: AppConfig,
    project_ref: Optional[str],
    page_name: str,
    url: str,
    descriptors: list[ElementDescriptor],
) -> None:
    from .model.schema import PageObject
    from .storage import ProjectManager

    manager = ProjectManager(_open_store(config))
    project = _resolve_project(manager, project_ref)
    page = project.pages.get(page_name) or PageObject(
        name=page_name, url=url, tool=project.tool, language=project.language
    )
    for descriptor in descriptors:
        page.add_element(descriptor.name, descriptor.selector_candidate, descriptor.type)
    manager.add_page_object(project.id, page)


def _resolve_project(manager, project_ref: Optional[str]):
    from .errors import ProjectNotFoundError

    if project_ref:
        return manager.find_project(project_ref)
    project = manager.get_current_project()
    if project is None:
        raise ProjectNotFoundError("(current)")
    return project


# ---------------------------------------------------------------------------
# record コマンド
# ---------------------------------------------------------------------------

@app.command()
def record(
    url: str = typer.Argument(..., help="記録対象の URL"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="ステップの出力先 YAML（デフォルト: recordings/<case>.yaml）",
    ),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="保存先プロジェクト"),
    page_name: Optional[str] = typer.Option(None, "--page", help="記録した要素を登録するページオブジェクト名"),
    test_name: Optional[str] = typer.Option(None, "--test", "-t", help="保存先テストスペック名"),
    case_name: str = typer.Option("recorded", "--case", "-c", help="テストケース名"),
) -> None:
    """ブラウザ操作をステップとして記録する。ブラウザを閉じると記録が終了します。"""
    from .recorder.recorder import RecordingTarget

    config = apply_overrides(load_config_from_env(), headed=True)
    target = RecordingTarget(page_name=page_name, test_name=test_name, test_case_name=case_name)

    typer.echo(f"URL: {url}")
    typer.echo("ブラウザを閉じると記録が終了します。\n")
    try:
        test_case = asyncio.run(_record(url, config, target))
        if len(test_case.steps) <= 1:
            typer.echo("操作が記録されませんでした。")
            return

        output = output or Path("recordings") / f"{case_name}.yaml"
        _dump_steps(test_case.steps, output)
        typer.echo(f"記録完了: {output} ({len(test_case.steps)} ステップ)")

        if project or test_name or page_name:
            _save_recording(config, project, target, test_case)
            typer.echo("プロジェクトに保存しました")
    except Exception as exc:
        raise _fail(exc)


async def _record(url: str, config: AppConfig, target: RecordingTarget) -> TestCase:
    from .dom.snapshot import PlaywrightEventBridge
    from .messaging import MessageChannel
    from .model.schema import Step
    from .recorder import StepCollector, StepRecorder

    channel = MessageChannel()
    collector = StepCollector()
    collector.attach(channel)

    async with _launch_page(config) as page:
        await page.goto(url)
        bridge = PlaywrightEventBridge(page)
        await bridge.install()
        recorder = StepRecorder(bridge, channel)
        recorder.start(target)
        await page.wait_for_event("close", timeout=0)
        recorder.stop()

    await channel.drain()
    test_case = collector.to_test_case(target.test_case_name or "recorded")
    test_case.steps.insert(0, Step(action="navigate", value=url, url=url, page_name=target.page_name))
    return test_case


def _save_recording(
    config: AppConfig,
    project_ref: Optional[str],
    target: RecordingTarget,
    test_case: TestCase,
) -> None:
    from .model.schema import PageObject, TestSpec
    from .storage import ProjectManager

    manager = ProjectManager(_open_store(config))
    project = _resolve_project(manager, project_ref)

    if target.page_name:
        page = project.pages.get(target.page_name) or PageObject(
            name=target.page_name, url=test_case.steps[0].value or "",
            tool=project.tool, language=project.language,
        )
        for step in test_case.steps:
            if step.element_name and step.selector and page.find_element_by_selector(step.selector) is None:
                page.add_element(
                    step.element_name,
                    step.selector_candidate or step.selector,
                    step.element_type or "element",
                )
        manager.add_page_object(project.id, page)

    if target.test_name:
        test_spec = project.tests.get(target.test_name) or TestSpec(
            name=target.test_name, tool=project.tool, language=project.language
        )
        if target.page_name and target.page_name not in test_spec.page_names:
            test_spec.page_names.append(target.page_name)
        test_spec.replace_test_case(test_case)
        manager.add_test_spec(project.id, test_spec)


# ---------------------------------------------------------------------------
# replay コマンド
# ---------------------------------------------------------------------------

@app.command()
def replay(
    steps_file: Path = typer.Argument(..., help="ステップを記述した YAML ファイル"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="再生前に開く URL"),
    headed: Optional[bool] = typer.Option(None, "--headed/--headless", help="ブラウザ表示モード"),
    step_delay: Optional[float] = typer.Option(None, "--step-delay", help="ステップ間の待機秒数"),
) -> None:
    """記録したステップを再生する。"""
    config = apply_overrides(load_config_from_env(), headed=headed, step_delay=step_delay)
    try:
        steps = _load_steps(steps_file)
        failed = asyncio.run(_replay(steps, url, config))
    except Exception as exc:
        raise _fail(exc)

    typer.echo(f"\n{len(steps)} ステップ中 {failed} 件失敗")
    if failed:
        raise typer.Exit(code=1)


async def _replay(steps: list[Step], url: Optional[str], config: AppConfig) -> int:
    from .core import PlaywrightDriver, ReplayEngine

    failed = 0
    async with _launch_page(config) as page:
        if url:
            await page.goto(url)
        driver = PlaywrightDriver(page, screenshot_dir=Path(config.artifacts_dir) / "screenshots")
        engine = ReplayEngine(driver, step_delay=config.step_delay, highlight_ms=config.highlight_ms)
        async for result in engine.replay(steps):
            mark = "✓" if result.status == "success" else "✗"
            line = f"{mark} {result.index + 1}. {result.step.action} {result.step.selector or result.step.value or ''}"
            if result.error:
                line += f": {result.error}"
                failed += 1
            typer.echo(line)
    return failed


# ---------------------------------------------------------------------------
# run コマンド
# ---------------------------------------------------------------------------

@app.command()
def run(
    project: str = typer.Argument(..., help="プロジェクト（ID または名前）"),
    test: str = typer.Argument(..., help="テストスペック名"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="実行前に開く URL"),
    env: str = typer.Option("local", "--env", "-e", help="URL を取得するプロジェクト環境"),
    headed: Optional[bool] = typer.Option(None, "--headed/--headless", help="ブラウザ表示モード"),
) -> None:
    """プロジェクトのテストスペックを実行し、レポートを出力する。"""
    from .core import Reporter
    from .errors import TestSpecNotFoundError
    from .storage import ProjectManager, ResultsStore

    config = apply_overrides(load_config_from_env(), headed=headed)
    try:
        store = _open_store(config)
        found = ProjectManager(store).find_project(project)
        test_spec = found.tests.get(test)
        if test_spec is None:
            raise TestSpecNotFoundError(test)

        start_url = url or found.environments.get(env, {}).get("url") or None
        results = ResultsStore(store, max_history=config.max_history)
        suite = asyncio.run(_run(test_spec, start_url, config, results))

        output_dir = Path(config.artifacts_dir) / suite.id
        reporter = Reporter()
        reporter.generate_json(suite, output_dir)
        html_path = reporter.generate_html(suite, output_dir)
        reporter.generate_junit_xml(suite, output_dir)
    except Exception as exc:
        raise _fail(exc)

    typer.echo(f"スイート: {suite.suite_name}")
    typer.echo(f"ステータス: {suite.status.value}")
    typer.echo(f"結果: {suite.passed}/{suite.total} passed, {suite.failed} failed, {suite.skipped} skipped")
    typer.echo(f"実行時間: {suite.duration_ms:.0f}ms")
    typer.echo(f"レポート: {html_path}")
    if suite.failed:
        raise typer.Exit(code=1)


async def _run(test_spec, start_url: Optional[str], config: AppConfig, results):
    from .core import PlaywrightDriver, TestRunner

    def _progress(case_name, step_result) -> None:
        typer.echo(f"  [{case_name}] {step_result.index}. {step_result.action} → {step_result.status.value}")

    async with _launch_page(config) as page:
        if start_url:
            await page.goto(start_url)
        driver = PlaywrightDriver(page, screenshot_dir=Path(config.artifacts_dir) / "screenshots")
        runner = TestRunner(driver, results, env=dict(os.environ), on_progress=_progress)
        return await runner.run_suite(test_spec)


# ---------------------------------------------------------------------------
# export コマンド
# ---------------------------------------------------------------------------

@app.command()
def export(
    project: str = typer.Argument(..., help="プロジェクト（ID または名前）"),
    output: Path = typer.Option(..., "--output", "-o", help="出力先ディレクトリ"),
) -> None:
    """プロジェクトをテストコード一式として書き出す。"""
    from .codegen import export_project, write_files
    from .storage import ProjectManager

    config = load_config_from_env()
    try:
        found = ProjectManager(_open_store(config)).find_project(project)
        written = write_files(export_project(found), output)
    except Exception as exc:
        raise _fail(exc)

    for path in written:
        typer.echo(f"  {path}")
    typer.echo(f"{len(written)} ファイルを書き出しました: {output}")


# ---------------------------------------------------------------------------
# results コマンド
# ---------------------------------------------------------------------------

@app.command()
def results(
    clear: bool = typer.Option(False, "--clear", help="履歴を削除する"),
    json_id: Optional[str] = typer.Option(
        None, "--json", help="指定 ID の結果を JSON で出力する（all で履歴全体）",
    ),
) -> None:
    """実行結果の履歴を表示する。"""
    from .storage import ResultsStore

    config = load_config_from_env()
    try:
        store = ResultsStore(_open_store(config), max_history=config.max_history)
        if clear:
            store.clear()
            typer.echo("実行結果の履歴を削除しました")
            return
        if json_id:
            typer.echo(store.export_json(None if json_id == "all" else json_id))
            return
        history = store.history()
    except Exception as exc:
        raise _fail(exc)

    if not history:
        typer.echo("実行結果はありません")
        return
    for suite in history:
        typer.echo(
            f"{suite.id}  {suite.timestamp:%Y-%m-%d %H:%M:%S}  {suite.suite_name:<20} "
            f"{suite.status.value:<7} {suite.passed}/{suite.total} passed"
        )


# ---------------------------------------------------------------------------
# project サブコマンド
# ---------------------------------------------------------------------------

@project_app.command("create")
def project_create(
    name: str = typer.Argument(..., help="プロジェクト名"),
    tool: str = typer.Option("playwright", "--tool", help="playwright / selenium"),
    language: str = typer.Option("python", "--language", "-l", help="python / javascript / typescript"),
) -> None:
    """プロジェクトを作成し、現在のプロジェクトに設定する。"""
    from .storage import ProjectManager

    config = load_config_from_env()
    try:
        created = ProjectManager(_open_store(config)).create_project(name, tool, language)
    except Exception as exc:
        raise _fail(exc)
    typer.echo(f"プロジェクトを作成しました: {created.name} ({created.id})")


@project_app.command("list")
def project_list() -> None:
    """プロジェクトの一覧を表示する。"""
    from .storage import ProjectManager

    config = load_config_from_env()
    try:
        manager = ProjectManager(_open_store(config))
        projects = manager.get_all_projects()
        current = manager.get_current_project()
    except Exception as exc:
        raise _fail(exc)

    if not projects:
        typer.echo("プロジェクトはありません")
        return
    for project in projects.values():
        mark = "*" if current is not None and current.id == project.id else " "
        typer.echo(
            f"{mark} {project.id}  {project.name:<20} {project.tool.value}/{project.language.value}  "
            f"pages={len(project.pages)} tests={len(project.tests)}"
        )


@project_app.command("delete")
def project_delete(
    project: str = typer.Argument(..., help="プロジェクト（ID または名前）"),
) -> None:
    """プロジェクトを削除する。"""
    from .storage import ProjectManager

    config = load_config_from_env()
    try:
        manager = ProjectManager(_open_store(config))
        manager.delete_project(manager.find_project(project).id)
    except Exception as exc:
        raise _fail(exc)
    typer.echo(f"プロジェクトを削除しました: {project}")


@project_app.command("migrate")
def project_migrate() -> None:
    """保存済みプロジェクトの旧形式データを修復する。"""
    from .storage import migrate_project_data

    config = load_config_from_env()
    try:
        report = migrate_project_data(_open_store(config))
    except Exception as exc:
        raise _fail(exc)
    typer.echo(
        f"セレクタ {report.fixed_selectors} 件、page_names {report.fixed_page_names} 件を修復しました"
        f"（ページ {report.pages} 件、テスト {report.tests} 件を走査）"
    )
