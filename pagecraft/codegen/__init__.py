# コード生成モジュール
# (tool, language) ごとのジェネレータ、レジストリ、プロジェクトのエクスポートを提供

from .base import AutoMethod, CodeGenerator, MethodMatch, auto_methods, find_page_method
from .export import export_project, write_files
from .playwright import (
    PlaywrightJavaScriptGenerator,
    PlaywrightPythonGenerator,
    PlaywrightTypeScriptGenerator,
)
from .registry import GeneratorRegistry, default_registry
from .selenium import SeleniumPythonGenerator

__all__ = [
    "AutoMethod",
    "CodeGenerator",
    "GeneratorRegistry",
    "MethodMatch",
    "PlaywrightJavaScriptGenerator",
    "PlaywrightPythonGenerator",
    "PlaywrightTypeScriptGenerator",
    "SeleniumPythonGenerator",
    "auto_methods",
    "default_registry",
    "export_project",
    "find_page_method",
    "write_files",
]
