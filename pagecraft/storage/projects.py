"""
ProjectManager — プロジェクトの永続化

プロジェクト（ページオブジェクト・テストスペックのコンテナ）を
キーバリューストアに保存・更新・削除する。

主な機能:
  - プロジェクトの作成・更新・削除と現在のプロジェクトの管理
  - ページオブジェクト・テストスペックの追加と更新（バージョン作成付き）
  - export_project(): ファイル一式の生成
  - migrate_project_data(): 旧形式データの修復
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from ..codegen import export_project
from ..errors import PageObjectNotFoundError, ProjectNotFoundError, TestSpecNotFoundError
from ..model.schema import Language, PageObject, Project, TestSpec, Tool
from ..model.selectors import coerce_candidate
from .store import KeyValueStore

logger = logging.getLogger(__name__)

PROJECTS_KEY = "projects"
CURRENT_PROJECT_KEY = "current_project_id"


class ProjectManager:
    """プロジェクトの永続化を担当するマネージャー。

    プロジェクトは {id: プロジェクト辞書} として 1 つのキーに保存する。
    各操作は読み込み → 変更 → 全体の書き戻しで行う。

    Args:
        store: 保存先のキーバリューストア
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    # -------------------------------------------------------------------
    # プロジェクト
    # -------------------------------------------------------------------

    def get_all_projects(self) -> dict[str, Project]:
        """全プロジェクトを {id: Project} で返す。"""
        raw = self._store.get(PROJECTS_KEY) or {}
        return {project_id: Project.model_validate(data) for project_id, data in raw.items()}

    def get_project(self, project_id: str) -> Project:
        """ID でプロジェクトを取得する。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合
        """
        raw = self._store.get(PROJECTS_KEY) or {}
        if project_id not in raw:
            raise ProjectNotFoundError(project_id)
        return Project.model_validate(raw[project_id])

    def find_project(self, id_or_name: str) -> Project:
        """ID または名前でプロジェクトを取得する。"""
        projects = self.get_all_projects()
        if id_or_name in projects:
            return projects[id_or_name]
        for project in projects.values():
            if project.name == id_or_name:
                return project
        raise ProjectNotFoundError(id_or_name)

    def get_current_project(self) -> Optional[Project]:
        """現在のプロジェクト。未設定または削除済みの場合は None。"""
        project_id = self._store.get(CURRENT_PROJECT_KEY)
        if not project_id:
            return None
        return self.get_all_projects().get(project_id)

    def set_current_project(self, project_id: str) -> None:
        self._store.set(CURRENT_PROJECT_KEY, project_id)

    def create_project(
        self,
        name: str,
        tool: Union[Tool, str] = Tool.PLAYWRIGHT,
        language: Union[Language, str] = Language.PYTHON,
        template: str = "default",
    ) -> Project:
        """プロジェクトを作成し、現在のプロジェクトに設定する。"""
        project = Project(name=name, tool=Tool(tool), language=Language(language), template=template)
        self._save(project)
        self.set_current_project(project.id)
        logger.info("プロジェクトを作成しました: %s (%s)", project.name, project.id)
        return project

    def update_project(self, project_id: str, updates: dict[str, Any]) -> Project:
        """プロジェクトのフィールドを更新する。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合
        """
        project = self.get_project(project_id)
        merged = project.model_dump()
        merged.update(updates)
        merged["updated_at"] = datetime.now()
        updated = Project.model_validate(merged)
        self._save(updated)
        return updated

    def delete_project(self, project_id: str) -> None:
        """プロジェクトを削除する。現在のプロジェクトだった場合は解除する。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合
        """
        raw = self._store.get(PROJECTS_KEY) or {}
        if project_id not in raw:
            raise ProjectNotFoundError(project_id)
        del raw[project_id]
        self._store.set(PROJECTS_KEY, raw)

        if self._store.get(CURRENT_PROJECT_KEY) == project_id:
            self._store.delete(CURRENT_PROJECT_KEY)
        logger.info("プロジェクトを削除しました: %s", project_id)

    # -------------------------------------------------------------------
    # ページオブジェクト
    # -------------------------------------------------------------------

    def add_page_object(self, project_id: str, page_object: PageObject) -> PageObject:
        """ページオブジェクトを追加する。同名のものは置き換える。"""
        project = self.get_project(project_id)
        project.pages[page_object.name] = page_object
        project.touch()
        self._save(project)
        return page_object

    def update_page_object(
        self,
        project_id: str,
        page_name: str,
        updates: dict[str, Any],
        create_new_version: bool = False,
    ) -> PageObject:
        """ページオブジェクトを更新する。

        Args:
            project_id: プロジェクト ID
            page_name: ページオブジェクト名
            updates: 更新するフィールド
            create_new_version: True の場合、更新前の内容をスナップショットしてからバージョンを進める

        Raises:
            PageObjectNotFoundError: プロジェクトまたはページオブジェクトが存在しない場合
        """
        project = self._project_or(project_id, PageObjectNotFoundError(page_name))
        page = project.pages.get(page_name)
        if page is None:
            raise PageObjectNotFoundError(page_name)

        if create_new_version:
            page.create_version()
        merged = page.model_dump()
        merged.update(updates)
        merged["updated_at"] = int(time.time() * 1000)
        updated = PageObject.model_validate(merged)

        project.pages[page_name] = updated
        project.touch()
        self._save(project)
        return updated

    # -------------------------------------------------------------------
    # テストスペック
    # -------------------------------------------------------------------

    def add_test_spec(self, project_id: str, test_spec: TestSpec) -> TestSpec:
        """テストスペックを追加する。同名のものは置き換える。"""
        project = self.get_project(project_id)
        project.tests[test_spec.name] = test_spec
        project.touch()
        self._save(project)
        return test_spec

    def update_test_spec(
        self,
        project_id: str,
        test_name: str,
        updates: dict[str, Any],
        create_new_version: bool = False,
    ) -> TestSpec:
        """テストスペックを更新する。

        Raises:
            TestSpecNotFoundError: プロジェクトまたはテストスペックが存在しない場合
        """
        project = self._project_or(project_id, TestSpecNotFoundError(test_name))
        test_spec = project.tests.get(test_name)
        if test_spec is None:
            raise TestSpecNotFoundError(test_name)

        if create_new_version:
            test_spec.create_version()
        merged = test_spec.model_dump()
        merged.update(updates)
        merged["updated_at"] = int(time.time() * 1000)
        updated = TestSpec.model_validate(merged)

        project.tests[test_name] = updated
        project.touch()
        self._save(project)
        return updated

    # -------------------------------------------------------------------
    # エクスポート
    # -------------------------------------------------------------------

    def export_project(self, project_id: str) -> dict[str, str]:
        """プロジェクトのファイル一式を {相対パス: 内容} で返す。"""
        return export_project(self.get_project(project_id))

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _project_or(self, project_id: str, error: Exception) -> Project:
        raw = self._store.get(PROJECTS_KEY) or {}
        if project_id not in raw:
            raise error
        return Project.model_validate(raw[project_id])

    def _save(self, project: Project) -> None:
        raw = self._store.get(PROJECTS_KEY) or {}
        raw[project.id] = project.model_dump(mode="json")
        self._store.set(PROJECTS_KEY, raw)


# ---------------------------------------------------------------------------
# データ移行
# ---------------------------------------------------------------------------

@dataclass
class MigrationReport:
    """migrate_project_data() の結果。

    Attributes:
        fixed_selectors: 候補形式に変換したセレクタ数
        fixed_page_names: 削除した不正な page_names エントリ数
        pages: 走査したページオブジェクト数
        tests: 走査したテストスペック数
    """

    fixed_selectors: int = 0
    fixed_page_names: int = 0
    pages: int = 0
    tests: int = 0

    @property
    def changed(self) -> bool:
        return self.fixed_selectors > 0 or self.fixed_page_names > 0


def migrate_project_data(store: KeyValueStore) -> MigrationReport:
    """保存済みプロジェクトの旧形式データを修復する。

    - ページ要素のオブジェクト形式セレクタ（{"type", "value"} / {"selector"}）を
      SelectorCandidate 形式に変換する
    - テストスペックの page_names から文字列以外のエントリを削除する

    修復があった場合のみストアに書き戻す。
    """
    raw = store.get(PROJECTS_KEY) or {}
    projects = raw.values() if isinstance(raw, dict) else raw
    report = MigrationReport()

    for project in projects:
        for page_name, page in (project.get("pages") or {}).items():
            elements = page.get("elements")
            if not isinstance(elements, dict):
                continue
            report.pages += 1
            for element_name, element in elements.items():
                if not isinstance(element, dict):
                    continue
                selector = element.get("selector")
                if not isinstance(selector, dict) or "kind" in selector:
                    continue
                try:
                    element["selector"] = coerce_candidate(selector).model_dump(mode="json")
                except ValueError:
                    logger.warning("セレクタを復元できません: %s.%s", page_name, element_name)
                    continue
                report.fixed_selectors += 1
                logger.info("セレクタを修復しました: %s.%s", page_name, element_name)

        for test_name, test_spec in (project.get("tests") or {}).items():
            report.tests += 1
            for key in ("page_names", "pageNames"):
                names = test_spec.get(key)
                if not isinstance(names, list):
                    continue
                cleaned = [name for name in names if isinstance(name, str)]
                removed = len(names) - len(cleaned)
                if removed:
                    test_spec[key] = cleaned
                    report.fixed_page_names += removed
                    logger.info("page_names を修復しました: %s (%d 件削除)", test_name, removed)

    if report.changed:
        store.set(PROJECTS_KEY, raw)
        logger.info(
            "データ移行が完了しました: セレクタ %d 件, page_names %d 件",
            report.fixed_selectors, report.fixed_page_names,
        )
    else:
        logger.info("修復が必要なデータはありませんでした")
    return report
