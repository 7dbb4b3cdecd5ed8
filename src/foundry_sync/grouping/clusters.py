"""Read-side grouping of applications into clusters."""

from typing import Dict, Iterable, List

import structlog

from foundry_sync.core.models import ApplicationView, ClusterView, WorkloadEntity
from foundry_sync.naming import NamingResolver

logger = structlog.get_logger()


class ClusterGrouper:
    """Groups cached entities by cluster, then clusters by application name."""

    def __init__(self, account: str, naming: NamingResolver, only_managed: bool = False):
        self.account = account
        self.naming = naming
        self.only_managed = only_managed

    def group(self, entities: Iterable[WorkloadEntity]) -> List[ApplicationView]:
        entities_by_cluster: Dict[str, Dict[str, WorkloadEntity]] = {}
        clusters_by_app: Dict[str, List[str]] = {}

        for entity in entities:
            names = self.naming.parse(entity.name)

            if self.only_managed and names.sequence is None:
                logger.debug(
                    "Skipping unmanaged application",
                    app=entity.name,
                    account=self.account,
                    reason="no sequence token",
                )
                continue

            if names.cluster is None:
                logger.debug(
                    "Skipping application outside the naming convention",
                    app=entity.name,
                    account=self.account,
                )
                continue

            entities_by_cluster.setdefault(names.cluster, {})[entity.id] = entity
            app_clusters = clusters_by_app.setdefault(names.app or names.cluster, [])
            if names.cluster not in app_clusters:
                app_clusters.append(names.cluster)

        return [
            ApplicationView(
                name=app_name,
                clusters=tuple(
                    ClusterView(
                        account=self.account,
                        name=cluster,
                        server_groups=tuple(entities_by_cluster[cluster].values()),
                    )
                    for cluster in cluster_names
                ),
            )
            for app_name, cluster_names in clusters_by_app.items()
        ]
