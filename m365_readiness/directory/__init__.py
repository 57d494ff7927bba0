from .protocol import DirectoryClient, DirectoryEntity, EntityKind
from .resolver import GroupGraphResolver, ResolvedMembership
from .graph import GraphDirectoryClient

__all__ = [
    "DirectoryClient",
    "DirectoryEntity",
    "EntityKind",
    "GroupGraphResolver",
    "ResolvedMembership",
    "GraphDirectoryClient",
]
