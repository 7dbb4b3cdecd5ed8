from .entity_cache import EntityCache

__all__ = ["EntityCache"]
