from .clusters import ClusterGrouper

__all__ = ["ClusterGrouper"]
