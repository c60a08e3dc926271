"""
GeneratorRegistry — (tool, language) ごとのコードジェネレータ管理

主な構成:
  - GeneratorRegistry: ジェネレータの登録・検索・描画
  - default_registry(): 組み込みジェネレータを登録済みのレジストリ

組み込み:
  playwright/python, playwright/javascript, playwright/typescript, selenium/python
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

from ..errors import UnsupportedCombinationError
from ..model.schema import Language, PageObject, TestSpec, Tool
from .base import CodeGenerator
from .playwright import (
    PlaywrightJavaScriptGenerator,
    PlaywrightPythonGenerator,
    PlaywrightTypeScriptGenerator,
)
from .selenium import SeleniumPythonGenerator

logger = logging.getLogger(__name__)


class GeneratorRegistry:
    """(tool, language) をキーにコードジェネレータを管理するレジストリ。

    使用例::

        registry = default_registry()
        code = registry.render("playwright", "python", page_object)
    """

    def __init__(self) -> None:
        self._generators: dict[tuple[Tool, Language], CodeGenerator] = {}

    def register(self, generator: CodeGenerator) -> None:
        """ジェネレータを登録する。

        同じ (tool, language) のジェネレータが既にある場合は上書きする（警告を出力）。

        Raises:
            TypeError: generator が CodeGenerator Protocol を満たさない場合
        """
        if not isinstance(generator, CodeGenerator):
            raise TypeError(
                f"generator は CodeGenerator Protocol を満たす必要があります: "
                f"{type(generator).__name__}"
            )

        key = (Tool(generator.tool), Language(generator.language))
        if key in self._generators:
            logger.warning(
                "ジェネレータ %s/%s を上書きします（既存: %s → 新規: %s）",
                key[0].value,
                key[1].value,
                type(self._generators[key]).__name__,
                type(generator).__name__,
            )
        self._generators[key] = generator
        logger.debug("ジェネレータを登録しました: %s/%s", key[0].value, key[1].value)

    def get(self, tool: Union[Tool, str], language: Union[Language, str]) -> CodeGenerator:
        """(tool, language) のジェネレータを取得する。

        Raises:
            UnsupportedCombinationError: 未登録の組み合わせの場合
        """
        tool_value = tool.value if isinstance(tool, Tool) else str(tool)
        language_value = language.value if isinstance(language, Language) else str(language)
        try:
            key = (Tool(tool_value), Language(language_value))
        except ValueError:
            raise UnsupportedCombinationError(tool_value, language_value) from None
        generator = self._generators.get(key)
        if generator is None:
            raise UnsupportedCombinationError(tool_value, language_value)
        return generator

    def supports(self, tool: Union[Tool, str], language: Union[Language, str]) -> bool:
        try:
            self.get(tool, language)
        except UnsupportedCombinationError:
            return False
        return True

    def combinations(self) -> list[tuple[Tool, Language]]:
        """登録済みの (tool, language) の一覧。"""
        return list(self._generators)

    def render(
        self,
        tool: Union[Tool, str],
        language: Union[Language, str],
        entity: Union[PageObject, TestSpec],
        pages: Optional[Mapping[str, PageObject]] = None,
    ) -> str:
        """ページオブジェクトまたはテストスペックをソースコードに変換する。

        Args:
            tool: テスト自動化ツール
            language: 生成コードの言語
            entity: PageObject または TestSpec
            pages: TestSpec の場合に参照するページオブジェクト

        Returns:
            生成されたソースコード

        Raises:
            UnsupportedCombinationError: 未登録の組み合わせの場合
            TypeError: entity が PageObject / TestSpec 以外の場合
        """
        generator = self.get(tool, language)
        if isinstance(entity, PageObject):
            return generator.render_page(entity)
        if isinstance(entity, TestSpec):
            return generator.render_test(entity, pages or {})
        raise TypeError(f"描画できないエンティティです: {type(entity).__name__}")


def default_registry() -> GeneratorRegistry:
    """組み込みジェネレータを登録したレジストリを返す。"""
    registry = GeneratorRegistry()
    registry.register(PlaywrightPythonGenerator())
    registry.register(PlaywrightJavaScriptGenerator())
    registry.register(PlaywrightTypeScriptGenerator())
    registry.register(SeleniumPythonGenerator())
    return registry
