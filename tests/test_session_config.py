# tests/test_session_config.py
"""
Tests for classifier_dl.training.session_config

Covers:
- parse_config_proto
- torch_session
- TorchClassifierTrainer honouring config_proto_bytes
"""

from __future__ import annotations

import numpy as np
import pytest
import torch

tf = pytest.importorskip("tensorflow")

from classifier_dl.errors import TrainerFailure
from classifier_dl.models.classifier import ClassifierGraphConfig
from classifier_dl.models.saved_model import SavedModelBundle
from classifier_dl.training import session_config as sc
from classifier_dl.training.config import ClassifierDLConfig
from classifier_dl.training.trainer import TorchClassifierTrainer, TrainingInstances


def _proto_bytes(intra: int = 1, inter: int = 0) -> bytes:
    proto = tf.compat.v1.ConfigProto(
        intra_op_parallelism_threads=intra,
        inter_op_parallelism_threads=inter,
    )
    return proto.SerializeToString()


def test_parse_config_proto_roundtrip():
    proto = sc.parse_config_proto(_proto_bytes(intra=3, inter=2))
    assert proto.intra_op_parallelism_threads == 3
    assert proto.inter_op_parallelism_threads == 2


def test_parse_config_proto_rejects_garbage():
    with pytest.raises(TrainerFailure, match="ConfigProto"):
        sc.parse_config_proto(b"\x0a\x05ab")


def test_torch_session_restores_threads():
    before = torch.get_num_threads()
    with sc.torch_session(sc.parse_config_proto(_proto_bytes(intra=1))):
        assert torch.get_num_threads() == 1
    assert torch.get_num_threads() == before


def test_trainer_applies_config_proto(monkeypatch):
    seen = []
    real_session = sc.torch_session

    def spy_session(proto):
        seen.append(proto.intra_op_parallelism_threads)
        return real_session(proto)

    monkeypatch.setattr(sc, "torch_session", spy_session)

    inst = TrainingInstances(
        embeddings=np.eye(4, dtype=np.float32),
        labels=np.asarray([0, 1, 0, 1], dtype=np.int64),
        num_classes=2,
    )
    cfg = ClassifierDLConfig(max_epochs=1, config_proto_bytes=_proto_bytes(intra=2))
    g = torch.Generator()
    g.manual_seed(0)

    TorchClassifierTrainer(device="cpu").fit(
        SavedModelBundle(tags=("serve",), graph=ClassifierGraphConfig(hidden_sizes=(4,))),
        inst,
        cfg,
        generator=g,
        run_id="r",
    )
    assert seen == [2]
