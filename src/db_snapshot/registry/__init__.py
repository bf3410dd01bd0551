"""Entity registry and dependency sequencing.

Usage:
    from db_snapshot.registry import EntityRegistry, EntityDef, ForeignKey
    from db_snapshot.registry import DependencySequencer, BUSINESS_REGISTRY
"""

from db_snapshot.registry.business import BUSINESS_REGISTRY
from db_snapshot.registry.models import (
    EntityDef,
    EntityRegistry,
    ForeignKey,
    JoinDef,
    ManyToMany,
)
from db_snapshot.registry.sequencer import DependencySequencer

__all__ = [
    "BUSINESS_REGISTRY",
    "DependencySequencer",
    "EntityDef",
    "EntityRegistry",
    "ForeignKey",
    "JoinDef",
    "ManyToMany",
]
