# classifier_dl/models/saved_model.py
from __future__ import annotations

import io
import json
import zipfile
import zlib
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import torch

from ..errors import ResourceLoadError
from .classifier import ClassifierGraphConfig

SERVING_TAG = "serve"
DESCRIPTOR_NAME = "saved_model.json"
VARIABLES_NAME = "variables.pt"


def default_resource() -> Path:
    """Location of the bundled base classifier graph."""
    return Path(str(resources.files("classifier_dl.models") / "resources" / "classifier-dl.zip"))


@dataclass
class SavedModelBundle:
    tags: Tuple[str, ...]
    graph: ClassifierGraphConfig
    signature: Dict[str, Any] = field(default_factory=dict)
    tables: Dict[str, Any] = field(default_factory=dict)
    variables: Optional[Dict[str, torch.Tensor]] = None
    source: Optional[Path] = None
    tables_initialized: bool = False

    def init_tables(self) -> None:
        """
        Turn every lookup table into a value -> index map and check the graph
        against the tables it references.
        """
        if self.tables_initialized:
            return
        initialized: Dict[str, Dict[str, int]] = {}
        for name, values in self.tables.items():
            if not isinstance(values, list):
                raise ResourceLoadError(f"lookup table '{name}' must be a list, got {type(values).__name__}")
            initialized[name] = {str(v): i for i, v in enumerate(values)}

        activations = initialized.get("activations")
        if activations is not None and self.graph.activation.lower() not in activations:
            raise ResourceLoadError(
                f"graph activation '{self.graph.activation}' is not in the 'activations' "
                f"table {sorted(activations)}"
            )
        self.tables = initialized
        self.tables_initialized = True


def _select_meta_graph(meta_graphs: List[Dict[str, Any]], tags: Sequence[str]) -> Dict[str, Any]:
    for i, meta in enumerate(meta_graphs):
        if not isinstance(meta, dict):
            raise ResourceLoadError(f"meta graph #{i} must be an object, got {type(meta).__name__}")
        meta_tags = meta.get("tags", [])
        if not isinstance(meta_tags, list) or not all(isinstance(t, str) for t in meta_tags):
            raise ResourceLoadError(f"tags of meta graph #{i} must be a list of strings")

    wanted = set(tags)
    for meta in meta_graphs:
        if set(meta.get("tags", [])) == wanted:
            return meta
    available = [sorted(m.get("tags", [])) for m in meta_graphs]
    raise ResourceLoadError(
        f"no meta graph with tags {sorted(wanted)} in saved model; available: {available}"
    )


def read_zipped_saved_model(
    path: str | Path | None = None,
    tags: Sequence[str] = (SERVING_TAG,),
    init_all_tables: bool = True,
) -> SavedModelBundle:
    """
    Load a zipped saved model: a `saved_model.json` descriptor with one entry
    per tag set and, optionally, a `variables.pt` torch state dict.
    """
    path = Path(path) if path is not None else default_resource()
    if not path.is_file():
        raise ResourceLoadError(f"saved model not found at {path}")

    try:
        with zipfile.ZipFile(path) as zf:
            names = set(zf.namelist())
            if DESCRIPTOR_NAME not in names:
                raise ResourceLoadError(
                    f"{path} does not contain {DESCRIPTOR_NAME}; entries: {sorted(names)}"
                )
            descriptor = json.loads(zf.read(DESCRIPTOR_NAME).decode("utf-8"))
            raw_variables = zf.read(VARIABLES_NAME) if VARIABLES_NAME in names else None
    except (zipfile.BadZipFile, zlib.error) as e:
        raise ResourceLoadError(f"{path} is not a valid zip archive: {e}") from e
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ResourceLoadError(f"malformed {DESCRIPTOR_NAME} in {path}: {e}") from e

    meta_graphs = descriptor.get("meta_graphs") if isinstance(descriptor, dict) else None
    if not isinstance(meta_graphs, list):
        raise ResourceLoadError(f"{DESCRIPTOR_NAME} in {path} has no 'meta_graphs' list")
    meta = _select_meta_graph(meta_graphs, tags)

    for key in ("graph", "signature", "tables"):
        if key in meta and not isinstance(meta[key], dict):
            raise ResourceLoadError(
                f"'{key}' of the meta graph in {path} must be an object, got {type(meta[key]).__name__}"
            )

    try:
        graph = ClassifierGraphConfig.from_dict(meta["graph"])
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ResourceLoadError(f"invalid graph description in {path}: {e}") from e

    variables = None
    if raw_variables is not None:
        try:
            variables = torch.load(io.BytesIO(raw_variables), map_location="cpu")
        except Exception as e:
            raise ResourceLoadError(f"could not read {VARIABLES_NAME} from {path}: {e}") from e
        if not isinstance(variables, dict):
            raise ResourceLoadError(f"{VARIABLES_NAME} in {path} is not a state dict")

    bundle = SavedModelBundle(
        tags=tuple(tags),
        graph=graph,
        signature=dict(meta.get("signature", {})),
        tables=dict(meta.get("tables", {})),
        variables=variables,
        source=path,
    )
    if init_all_tables:
        bundle.init_tables()
    return bundle
