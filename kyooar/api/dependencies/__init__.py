from kyooar.api.dependencies.context import ConsoleContext, build_context, get_console_context
from kyooar.api.dependencies.guards import active_subscription, enforce, no_subscription, protect

__all__ = [
    "ConsoleContext",
    "active_subscription",
    "build_context",
    "enforce",
    "get_console_context",
    "no_subscription",
    "protect",
]
