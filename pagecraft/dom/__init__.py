# DOM モジュール
# lxml ベースの Document、レイアウト、イベント購読、ライブページのスナップショットを提供

from .document import (
    INDEX_ATTR,
    Document,
    DomEvent,
    EventSource,
    Layout,
    Subscription,
    element_text,
    element_value,
    is_descendant,
    set_element_value,
)
from .snapshot import PageSnapshotter, PlaywrightEventBridge

__all__ = [
    "Document",
    "DomEvent",
    "EventSource",
    "INDEX_ATTR",
    "Layout",
    "PageSnapshotter",
    "PlaywrightEventBridge",
    "Subscription",
    "element_text",
    "element_value",
    "is_descendant",
    "set_element_value",
]
