# エンジンモジュール
# セレクタ生成、要素分類、名前生成、要素検出を提供

from .classifier import classify, has_click_binding
from .detector import ElementDetector, find_section
from .naming import derive_name, sanitize_name, to_camel_case, to_pascal_case, to_snake_case
from .selector import SelectorEngine, css_escape, is_dynamic_id

__all__ = [
    "ElementDetector",
    "SelectorEngine",
    "classify",
    "css_escape",
    "derive_name",
    "find_section",
    "has_click_binding",
    "is_dynamic_id",
    "sanitize_name",
    "to_camel_case",
    "to_pascal_case",
    "to_snake_case",
]
