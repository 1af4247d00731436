from .cache_cmds import register as register_cache
from .metrics_cmds import register as register_metrics

__all__ = [
    "register_cache",
    "register_metrics",
]
