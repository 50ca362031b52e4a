"""In-memory artifacts built from an installed model directory."""
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Sequence


class ArtifactKind(str, Enum):
    MODEL = "model"    # saved model bundle (directory + tags)
    GRAPH = "graph"    # serialized computation graph (.pb)
    LABELS = "labels"  # text file, one label per line
    FILE = "file"      # plain path to a file in the model directory


class Graph:
    """A serialized computation graph, as read from a ``.pb`` file.

    Hosts with a TensorFlow binding pass a ``graph_factory`` to the
    ResourceCache that turns the bytes into their own graph object; this
    default keeps the definition in memory.
    """

    def __init__(self, graph_def: bytes) -> None:
        self.graph_def = graph_def
        self.closed = False

    @property
    def size(self) -> int:
        return len(self.graph_def)

    def close(self) -> None:
        self.closed = True
        self.graph_def = b""

    def __enter__(self) -> "Graph":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


class ModelBundle:
    """A saved model directory loaded with a set of tags; remembers whether it was closed."""

    def __init__(
        self,
        path: Path,
        tags: Sequence[str] = (),
        loader: Optional[Callable[[Path, Sequence[str]], Any]] = None,
    ) -> None:
        self.path = path
        self.tags = tuple(tags)
        self.model = loader(path, self.tags) if loader is not None else None
        self.closed = False

    def close(self) -> None:
        self.closed = True
        close = getattr(self.model, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "ModelBundle":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def read_labels(path: Path) -> list[str]:
    """Read a labels file: one UTF-8 label per line, line endings stripped."""
    with path.open("r", encoding="utf-8") as f:
        return [line.rstrip("\r\n") for line in f]
