"""
プロジェクトのエクスポート

プロジェクトからページオブジェクト・テスト・設定ファイル・
環境定義・依存関係ファイル・README を生成し、{相対パス: 内容} で返す。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from ..model.schema import Language, Project
from .base import pages_for_test
from .registry import GeneratorRegistry, default_registry

logger = logging.getLogger(__name__)

_NODE_LANGUAGES = (Language.JAVASCRIPT, Language.TYPESCRIPT)


def _readme(project: Project) -> str:
    node = project.language in _NODE_LANGUAGES
    install = "npm install" if node else "pip install -r requirements.txt"
    run = "npm test" if node else "pytest"
    return (
        f"# {project.name}\n"
        "\n"
        f"Automation project using {project.tool.value} with {project.language.value}.\n"
        "\n"
        "## Setup\n"
        "\n"
        f"```bash\n{install}\n```\n"
        "\n"
        "## Run Tests\n"
        "\n"
        f"```bash\n{run}\n```\n"
        "\n"
        "## Project Structure\n"
        "\n"
        "- `pages/` - Page Object Models\n"
        "- `tests/` - Test specifications\n"
        "- `environments.json` - Environment URLs and credentials\n"
    )


def export_project(
    project: Project,
    registry: Optional[GeneratorRegistry] = None,
) -> dict[str, str]:
    """プロジェクトのファイル一式を生成する。

    Args:
        project: エクスポート対象のプロジェクト
        registry: 使用するレジストリ（未指定時は default_registry()）

    Returns:
        {相対パス: ファイル内容}

    Raises:
        UnsupportedCombinationError: プロジェクトの (tool, language) に対応する
            ジェネレータがない場合
    """
    generator = (registry or default_registry()).get(project.tool, project.language)
    files: dict[str, str] = {}

    for page in project.pages.values():
        path = generator.page_path(page)
        files[path] = generator.render_page(page)
        logger.debug("ページオブジェクトを生成しました: %s", path)

    for test_spec in project.tests.values():
        pages = pages_for_test(test_spec, project.pages)
        missing = [name for name in test_spec.page_names if name not in project.pages]
        if missing:
            logger.warning(
                "テスト %s が参照するページオブジェクトがありません: %s",
                test_spec.name, ", ".join(missing),
            )
        path = generator.test_path(test_spec)
        files[path] = generator.render_test(test_spec, pages)
        logger.debug("テストを生成しました: %s", path)

    files.update(generator.support_files(project))
    files["environments.json"] = json.dumps(project.environments, indent=2, ensure_ascii=False) + "\n"
    files["README.md"] = _readme(project)

    logger.info("プロジェクトをエクスポートしました: %s (%d ファイル)", project.name, len(files))
    return files


def write_files(files: dict[str, str], output_dir: Path) -> list[Path]:
    """export_project() の結果をディレクトリに書き出す。

    Args:
        files: {相対パス: 内容}
        output_dir: 出力先ディレクトリ（存在しなければ作成する）

    Returns:
        書き出したファイルのパス
    """
    written: list[Path] = []
    for relative, content in files.items():
        path = output_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if path.suffix in (".sh",):
            path.chmod(0o755)
        written.append(path)
    logger.info("%d ファイルを書き出しました: %s", len(written), output_dir)
    return written
