"""
データモデル — 要素・ステップ・テストスペック・ページオブジェクト・プロジェクト

記録・再生・テスト実行・コード生成で共有するエンティティを
Pydantic v2 モデルとして定義する。

主な機能:
  - ElementKind / ElementDescriptor: 検出された要素の分類とスナップショット
  - Step: 記録された 1 操作
  - TestCase / TestSpec: テストケースとバージョン履歴付きのテストスペック
  - PageObject: 名前付き要素とメソッドを持つページオブジェクト
  - Project: ページオブジェクトとテストスペックのコンテナ

バージョニング:
  create_version() は現在の内容のスナップショットを history に追加した後で
  version をインクリメントする。スナップショットは以後変更されない。
"""

from __future__ import annotations

import enum
import time
import uuid
from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..errors import DuplicateTestCaseNameError
from .selectors import SelectorCandidate, coerce_candidate


def _now_ms() -> int:
    """現在時刻（エポックミリ秒）。"""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# ツール・言語
# ---------------------------------------------------------------------------

class Tool(str, enum.Enum):
    """テスト自動化ツール。"""

    PLAYWRIGHT = "playwright"
    SELENIUM = "selenium"
    WEBDRIVERIO = "webdriverio"


class Language(str, enum.Enum):
    """生成コードの言語。"""

    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    JAVA = "java"


_CONFIG_FILES: dict[tuple[str, str], str] = {
    ("playwright", "javascript"): "playwright.config.js",
    ("playwright", "typescript"): "playwright.config.ts",
    ("playwright", "python"): "pytest.ini",
    ("playwright", "java"): "pom.xml",
    ("selenium", "javascript"): "wdio.conf.js",
    ("selenium", "typescript"): "wdio.conf.ts",
    ("selenium", "python"): "pytest.ini",
    ("selenium", "java"): "pom.xml",
    ("webdriverio", "javascript"): "wdio.conf.js",
    ("webdriverio", "typescript"): "wdio.conf.ts",
}


def config_file_for(tool: Union[Tool, str], language: Union[Language, str]) -> str:
    """(tool, language) に対応する設定ファイル名を返す。未知の組み合わせは config.js。"""
    key = (Tool(tool).value, Language(language).value)
    return _CONFIG_FILES.get(key, "config.js")


# ---------------------------------------------------------------------------
# 要素
# ---------------------------------------------------------------------------

class ElementKind(str, enum.Enum):
    """要素の分類。"""

    BUTTON = "button"
    INPUT = "input"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SELECT = "select"
    LINK = "link"
    TEXTAREA = "textarea"
    TAB = "tab"
    MENUITEM = "menuitem"
    OPTION = "option"
    SWITCH = "switch"
    ELEMENT = "element"


class ElementDescriptor(BaseModel):
    """検出された要素の不変スナップショット。

    生成後に DOM が変化しても内容は更新されない。
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="生成された要素名（camelCase）")
    type: ElementKind = Field(..., description="要素の分類")
    selector: str = Field(..., description="最良セレクタの値")
    selector_candidate: SelectorCandidate = Field(..., description="最良セレクタ候補")
    text: str = Field(default="", description="トリム済みテキスト（最大 50 文字）")
    placeholder: Optional[str] = Field(default=None, description="placeholder 属性")
    id: Optional[str] = Field(default=None, description="id 属性")
    classes: list[str] = Field(default_factory=list, description="class 属性のリスト")
    tag: str = Field(default="", description="小文字のタグ名")

    @field_validator("text")
    @classmethod
    def _truncate_text(cls, v: str) -> str:
        return v[:50]


# ---------------------------------------------------------------------------
# ステップ
# ---------------------------------------------------------------------------

StepAction = Literal["click", "fill", "select", "navigate", "screenshot", "assertion"]
AssertionType = Literal["toBeVisible", "toBeEnabled", "toHaveText"]

_ACTIONS_REQUIRING_SELECTOR = ("click", "fill", "select", "assertion")


class StepAssertion(BaseModel):
    """ステップに付与されたアサーション。"""

    type: AssertionType = Field(..., description="アサーション種別")
    expected: Optional[str] = Field(default=None, description="期待値（toHaveText 用）")


class Step(BaseModel):
    """記録された 1 操作。

    記録後は不変として扱う。セレクタの差し替えは retarget() で
    新しい Step を生成し、TestCase 内の元のステップと置き換える。
    """

    action: StepAction = Field(..., description="操作種別")
    selector: str = Field(default="", description="対象要素のセレクタ")
    selector_candidate: Optional[SelectorCandidate] = Field(default=None, description="セレクタ候補")
    value: Optional[str] = Field(default=None, description="入力値・選択値・遷移先 URL")
    element_name: Optional[str] = Field(default=None, description="要素名")
    element_type: Optional[str] = Field(default=None, description="要素の分類")
    page_name: Optional[str] = Field(default=None, description="ページオブジェクト名")
    url: Optional[str] = Field(default=None, description="記録時のページ URL")
    timestamp: int = Field(default_factory=_now_ms, description="記録時刻（エポックミリ秒）")
    annotations: list[str] = Field(default_factory=list, description="注釈")
    assertions: list[StepAssertion] = Field(default_factory=list, description="アサーション")
    assertion_type: Optional[AssertionType] = Field(
        default=None, description="action=assertion のときのアサーション種別"
    )

    @model_validator(mode="after")
    def _check_required_fields(self) -> Step:
        if self.action in _ACTIONS_REQUIRING_SELECTOR and not self.selector:
            raise ValueError(f"{self.action} ステップには selector が必要です")
        if self.action in ("fill", "select") and self.value is None:
            raise ValueError(f"{self.action} ステップには value が必要です")
        if self.action == "assertion" and self.assertion_type is None:
            raise ValueError("assertion ステップには assertion_type が必要です")
        return self

    def retarget(self, candidate: SelectorCandidate) -> Step:
        """セレクタを差し替えた新しい Step を返す。"""
        return self.model_copy(
            update={"selector": candidate.value, "selector_candidate": candidate}
        )


# ---------------------------------------------------------------------------
# テストケース・テストスペック
# ---------------------------------------------------------------------------

class TestCase(BaseModel):
    """名前付きのステップ列。data を持つ場合はデータ駆動で行ごとに実行する。"""

    __test__ = False

    name: str = Field(..., description="テストケース名（スペック内で一意）")
    steps: list[Step] = Field(default_factory=list, description="ステップ列")
    data: Optional[list[dict[str, str]]] = Field(default=None, description="データ駆動用の行")
    created_at: int = Field(default_factory=_now_ms, description="作成時刻")


class TestSpecVersion(BaseModel):
    """TestSpec のバージョンスナップショット。"""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    version: int
    test_cases: list[TestCase]
    timestamp: int = Field(default_factory=_now_ms)


class TestSpec(BaseModel):
    """テストケースの集合。対象ページ名のリストとバージョン履歴を持つ。"""

    __test__ = False

    name: str = Field(..., description="テストスペック名")
    page_names: list[str] = Field(default_factory=list, description="対象ページオブジェクト名")
    tool: Tool = Field(default=Tool.PLAYWRIGHT, description="テスト自動化ツール")
    language: Language = Field(default=Language.PYTHON, description="生成コードの言語")
    test_cases: list[TestCase] = Field(default_factory=list, description="テストケース")
    version: int = Field(default=1, description="現在のバージョン")
    history: list[TestSpecVersion] = Field(default_factory=list, description="バージョン履歴")
    created_at: int = Field(default_factory=_now_ms)
    updated_at: int = Field(default_factory=_now_ms)

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_page_name(cls, data: Any) -> Any:
        """旧形式の単一 pageName を page_names に変換する。"""
        if isinstance(data, dict) and "page_names" not in data:
            legacy = data.get("page_name", data.get("pageName"))
            if legacy is not None:
                data = {k: v for k, v in data.items() if k not in ("page_name", "pageName")}
                data["page_names"] = legacy
        return data

    @field_validator("page_names", mode="before")
    @classmethod
    def _normalize_page_names(cls, v: Any) -> Any:
        """単一文字列をリスト化し、文字列以外の要素を除外する。"""
        if isinstance(v, str):
            return [v]
        if isinstance(v, list):
            return [p for p in v if isinstance(p, str)]
        return v

    def get_test_case(self, name: str) -> Optional[TestCase]:
        """名前でテストケースを取得する。"""
        for test_case in self.test_cases:
            if test_case.name == name:
                return test_case
        return None

    def add_test_case(
        self,
        name: str,
        steps: list[Step],
        data: Optional[list[dict[str, str]]] = None,
    ) -> TestCase:
        """テストケースを追加する。

        Args:
            name: テストケース名
            steps: ステップ列
            data: データ駆動用の行（任意）

        Returns:
            追加された TestCase

        Raises:
            DuplicateTestCaseNameError: 同名のテストケースが既に存在する場合
        """
        if self.get_test_case(name) is not None:
            raise DuplicateTestCaseNameError(name)

        test_case = TestCase(name=name, steps=list(steps), data=data)
        self.test_cases.append(test_case)
        self.updated_at = _now_ms()
        return test_case

    def replace_test_case(self, test_case: TestCase) -> None:
        """同名のテストケースを置き換える（再記録用）。存在しなければ追加する。"""
        for i, existing in enumerate(self.test_cases):
            if existing.name == test_case.name:
                self.test_cases[i] = test_case
                break
        else:
            self.test_cases.append(test_case)
        self.updated_at = _now_ms()

    def create_version(self) -> int:
        """現在のテストケースをスナップショットし、バージョンを進める。

        Returns:
            新しいバージョン番号
        """
        snapshot = TestSpecVersion(
            version=self.version,
            test_cases=[tc.model_copy(deep=True) for tc in self.test_cases],
        )
        self.history.append(snapshot)
        self.version += 1
        self.updated_at = _now_ms()
        return self.version


# ---------------------------------------------------------------------------
# ページオブジェクト
# ---------------------------------------------------------------------------

class PageElement(BaseModel):
    """ページオブジェクトに登録された要素。"""

    selector: SelectorCandidate = Field(..., description="セレクタ候補")
    type: ElementKind = Field(default=ElementKind.ELEMENT, description="要素の分類")
    added_at: int = Field(default_factory=_now_ms)

    @field_validator("selector", mode="before")
    @classmethod
    def _coerce_selector(cls, v: Any) -> SelectorCandidate:
        return coerce_candidate(v)


class PageMethod(BaseModel):
    """ページオブジェクトのカスタムメソッド。"""

    name: str
    steps: list[Step] = Field(default_factory=list)
    created_at: int = Field(default_factory=_now_ms)


class PageObjectVersion(BaseModel):
    """PageObject のバージョンスナップショット。"""

    model_config = ConfigDict(frozen=True)

    version: int
    elements: dict[str, PageElement]
    methods: list[PageMethod]
    timestamp: int = Field(default_factory=_now_ms)


class PageObject(BaseModel):
    """名前付き要素とメソッドを持つページオブジェクト。"""

    name: str = Field(..., description="ページオブジェクト名")
    url: str = Field(default="", description="ページ URL")
    tool: Tool = Field(default=Tool.PLAYWRIGHT)
    language: Language = Field(default=Language.PYTHON)
    elements: dict[str, PageElement] = Field(default_factory=dict)
    methods: list[PageMethod] = Field(default_factory=list)
    version: int = Field(default=1)
    history: list[PageObjectVersion] = Field(default_factory=list)
    created_at: int = Field(default_factory=_now_ms)
    updated_at: int = Field(default_factory=_now_ms)

    @field_validator("elements", mode="before")
    @classmethod
    def _coerce_legacy_elements(cls, v: Any) -> Any:
        """{"name": "#css"} 形式の旧データを PageElement 形式に変換する。"""
        if not isinstance(v, dict):
            return v
        result: dict[str, Any] = {}
        for name, data in v.items():
            if isinstance(data, (str, SelectorCandidate)):
                result[name] = {"selector": data}
            else:
                result[name] = data
        return result

    def add_element(
        self,
        name: str,
        selector: Union[str, SelectorCandidate, dict[str, Any]],
        element_type: Union[ElementKind, str] = ElementKind.ELEMENT,
    ) -> PageElement:
        """要素を追加する。旧形式の文字列セレクタは css 候補に変換される。

        同名の要素が存在する場合は上書きする。
        """
        element = PageElement(
            selector=coerce_candidate(selector),
            type=ElementKind(element_type),
        )
        self.elements[name] = element
        self.updated_at = _now_ms()
        return element

    def add_method(self, name: str, steps: list[Step]) -> PageMethod:
        """カスタムメソッドを追加する。"""
        method = PageMethod(name=name, steps=list(steps))
        self.methods.append(method)
        self.updated_at = _now_ms()
        return method

    def find_element_by_selector(self, selector: str) -> Optional[str]:
        """セレクタ値が一致する要素名を返す。"""
        for name, element in self.elements.items():
            if element.selector.value == selector:
                return name
        return None

    def create_version(self) -> int:
        """現在の要素とメソッドをスナップショットし、バージョンを進める。"""
        snapshot = PageObjectVersion(
            version=self.version,
            elements={k: v.model_copy(deep=True) for k, v in self.elements.items()},
            methods=[m.model_copy(deep=True) for m in self.methods],
        )
        self.history.append(snapshot)
        self.version += 1
        self.updated_at = _now_ms()
        return self.version


# ---------------------------------------------------------------------------
# プロジェクト
# ---------------------------------------------------------------------------

def _default_environments() -> dict[str, dict[str, Any]]:
    return {
        "local": {"url": "http://localhost:3000", "credentials": {}},
        "staging": {"url": "", "credentials": {}},
        "prod": {"url": "", "credentials": {}},
    }


class Project(BaseModel):
    """ページオブジェクトとテストスペックのコンテナ。"""

    id: str = Field(default_factory=lambda: f"proj_{uuid.uuid4().hex[:12]}")
    name: str = Field(..., description="プロジェクト名")
    tool: Tool = Field(default=Tool.PLAYWRIGHT)
    language: Language = Field(default=Language.PYTHON)
    template: str = Field(default="default", description="プロジェクトテンプレート名")
    pages: dict[str, PageObject] = Field(default_factory=dict)
    tests: dict[str, TestSpec] = Field(default_factory=dict)
    environments: dict[str, dict[str, Any]] = Field(default_factory=_default_environments)
    config_file: str = Field(default="", description="設定ファイル名（未指定時は自動決定）")
    version: str = Field(default="1.0.0")
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _derive_config_file(self) -> Project:
        if not self.config_file:
            self.config_file = config_file_for(self.tool, self.language)
        return self

    def touch(self) -> None:
        """更新日時を現在時刻にする。"""
        self.updated_at = datetime.now()
