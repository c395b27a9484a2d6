"""Zonal partitioning and the virtual network used by zone-aware dispatchers."""

from .kmeans import KMeansResult, lloyd_kmeans
from .partitioner import PartitionConfig, ZonalPartitioner
from .virtual_network import VirtualLink, VirtualNetwork, Zone

__all__ = [
    "KMeansResult",
    "lloyd_kmeans",
    "PartitionConfig",
    "ZonalPartitioner",
    "VirtualLink",
    "VirtualNetwork",
    "Zone",
]
