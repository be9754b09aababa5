# tests/conftest.py
from __future__ import annotations

from typing import Sequence

import numpy as np
import pyarrow as pa
import pytest
import torch

from classifier_dl.data.projection import set_storage_ref
from classifier_dl.models.classifier import ClassifierGraphConfig, SentenceEmbeddingClassifier
from classifier_dl.training.trainer import ClassifierRuntimeState

ANNOTATION_TYPE = pa.list_(
    pa.struct(
        [
            ("annotatorType", pa.string()),
            ("result", pa.string()),
            ("embeddings", pa.list_(pa.float32())),
        ]
    )
)


def make_dataset(
    labels: Sequence,
    vectors: Sequence[Sequence[float]],
    *,
    label_type: pa.DataType | None = None,
    ref: str | None = "sent_small_bert",
    label_column: str = "label",
    embeddings_column: str = "sentence_embeddings",
) -> pa.Table:
    annotations = [
        [{"annotatorType": "sentence_embeddings", "result": "", "embeddings": list(map(float, v))}]
        for v in vectors
    ]
    table = pa.table(
        {
            label_column: pa.array(list(labels), type=label_type),
            embeddings_column: pa.array(annotations, type=ANNOTATION_TYPE),
        }
    )
    if ref is not None:
        table = set_storage_ref(table, embeddings_column, ref)
    return table


def separable_vectors(labels: Sequence[str], dim: int = 4, seed: int = 0) -> np.ndarray:
    """One well-separated cluster per distinct label."""
    rng = np.random.default_rng(seed)
    classes = list(dict.fromkeys(labels))
    centers = {c: np.eye(dim, dtype=np.float32)[i % dim] * 3.0 for i, c in enumerate(classes)}
    return np.stack([centers[lbl] + 0.05 * rng.standard_normal(dim).astype(np.float32) for lbl in labels])


class FakeTrainer:
    """Records every fit call and returns a freshly initialised network state."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[dict] = []

    def fit(self, base_model, instances, config, *, generator, run_id):
        self.calls.append(
            {
                "base_model": base_model,
                "instances": instances,
                "config": config,
                "generator_seed": generator.initial_seed(),
                "run_id": run_id,
            }
        )
        if self.error is not None:
            raise self.error
        graph = ClassifierGraphConfig(hidden_sizes=(8,))
        net = SentenceEmbeddingClassifier(instances.input_dim, instances.num_classes, graph, config.dropout)
        return ClassifierRuntimeState(
            graph=graph,
            input_dim=instances.input_dim,
            num_classes=instances.num_classes,
            dropout=config.dropout,
            state_dict={k: v.detach().clone() for k, v in net.state_dict().items()},
        )


@pytest.fixture
def fake_trainer() -> FakeTrainer:
    return FakeTrainer()


@pytest.fixture
def small_runtime_state() -> ClassifierRuntimeState:
    torch.manual_seed(0)
    graph = ClassifierGraphConfig(hidden_sizes=(8,))
    net = SentenceEmbeddingClassifier(4, 2, graph, dropout=0.1)
    return ClassifierRuntimeState(
        graph=graph,
        input_dim=4,
        num_classes=2,
        dropout=0.1,
        state_dict={k: v.detach().clone() for k, v in net.state_dict().items()},
    )
