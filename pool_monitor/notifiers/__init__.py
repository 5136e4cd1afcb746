from .lark import LarkClient, LarkNotifier
from .lark_render import build_pool_card, format_pool_markdown

__all__ = [
    "LarkClient",
    "LarkNotifier",
    "build_pool_card",
    "format_pool_markdown",
]
