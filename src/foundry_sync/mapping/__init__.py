from .mapper import EntityMapper, MetadataEnvVar

__all__ = ["EntityMapper", "MetadataEnvVar"]
