"""tfhost resource cache: model archives on disk, graphs/labels/bundles in memory."""
from tfhost.resources.artifacts import ArtifactKind, Graph, ModelBundle, read_labels
from tfhost.resources.cache import InstallRecord, ResourceCache, read_install_record
from tfhost.resources.singleflight import SingleFlight

__all__ = [
    "ArtifactKind",
    "Graph",
    "InstallRecord",
    "ModelBundle",
    "ResourceCache",
    "SingleFlight",
    "read_install_record",
    "read_labels",
]
