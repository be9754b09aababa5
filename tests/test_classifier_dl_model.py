# tests/test_classifier_dl_model.py
"""
Tests for classifier_dl.pipelines.classifier_dl_model

Covers:
- assemble_model
- read-only surface and set_config_proto_bytes
- predict / predict_proba
- save_pretrained / from_pretrained
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from classifier_dl.encoding.dataset_encoder import ClassifierDatasetEncoderParams
from classifier_dl.pipelines.classifier_dl_model import ClassifierDLModel, assemble_model


@pytest.fixture
def model(small_runtime_state) -> ClassifierDLModel:
    return assemble_model(
        dataset_params=ClassifierDatasetEncoderParams(tags=["spam", "ham"]),
        runtime_state=small_runtime_state,
        storage_ref="sent_bert_base",
    )


# ---------------------------------------------------------------------------
# Surface
# ---------------------------------------------------------------------------

def test_assemble_without_config_proto(model):
    assert model.classes == ["spam", "ham"]
    assert model.storage_ref == "sent_bert_base"
    assert model.config_proto_bytes is None
    assert model.dataset_params.tags == ["spam", "ham"]


def test_assemble_with_config_proto(small_runtime_state):
    m = assemble_model(
        ClassifierDatasetEncoderParams(tags=["a"]), small_runtime_state, "ref", config_proto_bytes=b"\x01\x02"
    )
    assert m.config_proto_bytes == b"\x01\x02"


def test_read_only_fields(model):
    with pytest.raises(AttributeError):
        model.storage_ref = "other"
    with pytest.raises(AttributeError):
        model.dataset_params = ClassifierDatasetEncoderParams(tags=["x"])

    # returned params are a copy
    model.dataset_params.tags.append("eggs")
    assert model.classes == ["spam", "ham"]


def test_set_config_proto_bytes(model):
    assert model.set_config_proto_bytes([16, -1]) is model
    assert model.config_proto_bytes == b"\x10\xff"


# ---------------------------------------------------------------------------
# Inference
# ---------------------------------------------------------------------------

def test_predict_proba_shape_and_normalisation(model):
    probs = model.predict_proba(np.random.default_rng(0).standard_normal((5, 4)))
    assert probs.shape == (5, 2)
    np.testing.assert_allclose(probs.sum(axis=1), 1.0, rtol=1e-5)


def test_predict_returns_labels(model):
    preds = model.predict([[0.1, 0.2, 0.3, 0.4], [1.0, -1.0, 0.0, 2.0]])
    assert len(preds) == 2
    assert set(preds) <= {"spam", "ham"}


def test_predict_single_vector(model):
    assert model.predict_proba([0.0, 0.0, 0.0, 0.0]).shape == (1, 2)


def test_predict_wrong_width(model):
    with pytest.raises(ValueError, match="width 4"):
        model.predict([[1.0, 2.0]])


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def test_save_and_load_preserves_predictions(model, tmp_path: Path):
    model.set_config_proto_bytes(b"\x10\x02")
    x = np.random.default_rng(1).standard_normal((6, 4)).astype(np.float32)

    out = model.save_pretrained(tmp_path / "clf")
    restored = ClassifierDLModel.from_pretrained(out)

    assert restored.classes == model.classes
    assert restored.storage_ref == model.storage_ref
    assert restored.config_proto_bytes == b"\x10\x02"
    np.testing.assert_allclose(restored.predict_proba(x), model.predict_proba(x), rtol=1e-6)


def test_from_pretrained_missing_files(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        ClassifierDLModel.from_pretrained(tmp_path)
