"""
Road network model and scenario augmentation.
"""

from .augment import (
    AugmentationConfig,
    AugmentationSummary,
    NetworkAugmenter,
    backward_link_id,
    forward_link_id,
)
from .model import (
    AV_MODE,
    CAR_MODE,
    PT_MODE,
    VEHICULAR_MODES,
    WALK_MODE,
    Link,
    Network,
    Node,
    create_grid_network,
    node_id_for,
)

__all__ = [
    # Model
    "Network",
    "Node",
    "Link",
    "create_grid_network",
    "node_id_for",
    "AV_MODE",
    "CAR_MODE",
    "PT_MODE",
    "WALK_MODE",
    "VEHICULAR_MODES",
    # Augmentation
    "AugmentationConfig",
    "AugmentationSummary",
    "NetworkAugmenter",
    "forward_link_id",
    "backward_link_id",
]
