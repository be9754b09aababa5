# classifier_dl/pipelines/classifier_dl_model.py
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import torch

from ..encoding.dataset_encoder import ClassifierDatasetEncoder, ClassifierDatasetEncoderParams
from ..training.trainer import ClassifierRuntimeState

META_NAME = "classifier_dl_meta.json"
WEIGHTS_NAME = "classifier_dl.pt"


class ClassifierDLModel:
    """
    Fitted document classifier.

    Holds the trained network state, the label encoder parameters and the
    storage reference of the embeddings it was trained against. Only the
    runtime config blob may change after construction.
    """

    def __init__(
        self,
        dataset_params: ClassifierDatasetEncoderParams,
        runtime_state: ClassifierRuntimeState,
        storage_ref: str,
        config_proto_bytes: Optional[bytes] = None,
    ):
        self._dataset_params = ClassifierDatasetEncoderParams(tags=list(dataset_params.tags))
        self._encoder = ClassifierDatasetEncoder(self._dataset_params)
        self._runtime_state = runtime_state
        self._storage_ref = storage_ref
        self._config_proto_bytes = bytes(config_proto_bytes) if config_proto_bytes is not None else None
        self._module: torch.nn.Module | None = None

    @property
    def dataset_params(self) -> ClassifierDatasetEncoderParams:
        return ClassifierDatasetEncoderParams(tags=list(self._dataset_params.tags))

    @property
    def runtime_state(self) -> ClassifierRuntimeState:
        return self._runtime_state

    @property
    def storage_ref(self) -> str:
        return self._storage_ref

    @property
    def classes(self) -> List[str]:
        return list(self._dataset_params.tags)

    @property
    def encoder(self) -> ClassifierDatasetEncoder:
        return self._encoder

    @property
    def config_proto_bytes(self) -> Optional[bytes]:
        return self._config_proto_bytes

    def set_config_proto_bytes(self, raw: bytes | Sequence[int]) -> "ClassifierDLModel":
        self._config_proto_bytes = bytes(b & 0xFF for b in raw)
        return self

    def _get_module(self) -> torch.nn.Module:
        if self._module is None:
            self._module = self._runtime_state.build_module()
        return self._module

    def predict_proba(self, embeddings: np.ndarray | Sequence[Sequence[float]]) -> np.ndarray:
        x = torch.as_tensor(np.asarray(embeddings, dtype=np.float32))
        if x.ndim == 1:
            x = x.unsqueeze(0)
        if x.shape[1] != self._runtime_state.input_dim:
            raise ValueError(
                f"expected embeddings of width {self._runtime_state.input_dim}, got {x.shape[1]}"
            )
        with torch.inference_mode():
            logits = self._get_module()(x)["logits"]
        return torch.softmax(logits, dim=1).numpy()

    def predict(self, embeddings: np.ndarray | Sequence[Sequence[float]]) -> List[str]:
        return self._encoder.decode_output(self.predict_proba(embeddings).argmax(axis=1))

    def save_pretrained(self, output_dir: str | Path) -> Path:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        torch.save(self._runtime_state.state_dict, output_dir / WEIGHTS_NAME)
        meta = {
            "dataset_params": self._dataset_params.to_dict(),
            "storage_ref": self._storage_ref,
            "runtime": self._runtime_state.to_meta(),
            "config_proto_bytes": (
                list(self._config_proto_bytes) if self._config_proto_bytes is not None else None
            ),
        }
        with open(output_dir / META_NAME, "w", encoding="utf-8") as f:
            json.dump(meta, f, indent=2)
        return output_dir

    @classmethod
    def from_pretrained(
        cls,
        model_dir: str | Path,
        map_location: str | torch.device = "cpu",
    ) -> "ClassifierDLModel":
        model_dir = Path(model_dir)
        meta_path = model_dir / META_NAME
        weights_path = model_dir / WEIGHTS_NAME
        if not meta_path.exists() or not weights_path.exists():
            raise FileNotFoundError(
                f"Missing classifier files at {model_dir}. "
                f"Expected {META_NAME} and {WEIGHTS_NAME}."
            )
        with open(meta_path, "r", encoding="utf-8") as f:
            meta = json.load(f)

        state_dict = torch.load(weights_path, map_location=map_location)
        raw_proto = meta.get("config_proto_bytes")
        return cls(
            dataset_params=ClassifierDatasetEncoderParams.from_dict(meta["dataset_params"]),
            runtime_state=ClassifierRuntimeState.from_meta(meta["runtime"], state_dict),
            storage_ref=meta["storage_ref"],
            config_proto_bytes=bytes(raw_proto) if raw_proto is not None else None,
        )


def assemble_model(
    dataset_params: ClassifierDatasetEncoderParams,
    runtime_state: ClassifierRuntimeState,
    storage_ref: str,
    config_proto_bytes: Optional[bytes] = None,
) -> ClassifierDLModel:
    model = ClassifierDLModel(
        dataset_params=dataset_params,
        runtime_state=runtime_state,
        storage_ref=storage_ref,
    )
    if config_proto_bytes is not None:
        model.set_config_proto_bytes(config_proto_bytes)
    return model
