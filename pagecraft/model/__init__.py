"""
pagecraft.model — データモデルパッケージ

セレクタ候補・要素記述子・ステップ・テストスペック・ページオブジェクト・
プロジェクトの Pydantic モデルを公開する。
"""

from .schema import (
    ElementDescriptor,
    ElementKind,
    Language,
    PageElement,
    PageMethod,
    PageObject,
    Project,
    Step,
    StepAssertion,
    TestCase,
    TestSpec,
    Tool,
    config_file_for,
)
from .selectors import (
    SELECTOR_SCORES,
    CssSelector,
    RoleSelector,
    SelectorCandidate,
    SelectorKind,
    TextSelector,
    coerce_candidate,
    parse_selector,
)

__all__ = [
    "CssSelector",
    "ElementDescriptor",
    "ElementKind",
    "Language",
    "PageElement",
    "PageMethod",
    "PageObject",
    "Project",
    "RoleSelector",
    "SELECTOR_SCORES",
    "SelectorCandidate",
    "SelectorKind",
    "Step",
    "StepAssertion",
    "TestCase",
    "TestSpec",
    "TextSelector",
    "Tool",
    "coerce_candidate",
    "config_file_for",
    "parse_selector",
]
