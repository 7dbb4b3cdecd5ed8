from .applications import Applications, RefreshResult

__all__ = ["Applications", "RefreshResult"]
