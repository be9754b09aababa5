# classifier_dl/training/approach.py
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Optional, Sequence

import pyarrow as pa
import torch

from ..data.projection import (
    SENTENCE_EMBEDDINGS,
    check_label_column_type,
    distinct_labels,
    get_storage_ref_from_input,
    project_training_columns,
)
from ..encoding.dataset_encoder import ClassifierDatasetEncoder, ClassifierDatasetEncoderParams
from ..models.saved_model import SERVING_TAG, read_zipped_saved_model
from ..pipelines.classifier_dl_model import ClassifierDLModel, assemble_model
from .config import ClassifierDLConfig
from .trainer import TorchClassifierTrainer, Trainer, TrainingInstances

logger = logging.getLogger(__name__)


def random_uid(prefix: str = "ClassifierDL") -> str:
    return f"{prefix}_{uuid.uuid4().hex[-12:]}"


def make_generator(seed: Optional[int]) -> torch.Generator:
    g = torch.Generator()
    if seed is None:
        g.seed()
    else:
        g.manual_seed(seed)
    return g


def train(
    dataset: pa.Table,
    label_column: str,
    config: ClassifierDLConfig | None = None,
    *,
    input_cols: Sequence[str] = (SENTENCE_EMBEDDINGS,),
    trainer: Trainer | None = None,
    base_model_path: str | Path | None = None,
    uid: str | None = None,
) -> ClassifierDLModel:
    """
    Train a document classifier on the sentence embeddings in `input_cols[0]`
    against the labels in `label_column`.

    Fails fast, in this order: SchemaError, MissingProvenanceError,
    TooManyClassesError, ResourceLoadError. Anything raised by the trainer
    propagates unchanged.
    """
    config = config or ClassifierDLConfig()
    trainer = trainer or TorchClassifierTrainer()
    uid = uid or random_uid()
    if not input_cols:
        raise ValueError("input_cols must name the sentence embeddings column")

    check_label_column_type(dataset, label_column)
    embeddings_ref = get_storage_ref_from_input(dataset, input_cols, SENTENCE_EMBEDDINGS)

    projected = project_training_columns(dataset, label_column, input_cols[0])
    labels = distinct_labels(projected, label_column)
    encoder = ClassifierDatasetEncoder(ClassifierDatasetEncoderParams(tags=labels))

    base_model = read_zipped_saved_model(base_model_path, tags=(SERVING_TAG,), init_all_tables=True)

    train_dataset = encoder.collect_training_instances(projected, label_column)
    instances = TrainingInstances(
        embeddings=encoder.extract_sentence_embeddings(train_dataset),
        labels=encoder.extract_labels(train_dataset),
        num_classes=encoder.num_classes,
    )
    logger.info(
        "Training %s on %d instances, %d classes, embeddings ref '%s'",
        uid, len(instances), encoder.num_classes, embeddings_ref,
    )

    runtime_state = trainer.fit(
        base_model,
        instances,
        config,
        generator=make_generator(config.random_seed),
        run_id=uid,
    )

    return assemble_model(
        dataset_params=encoder.params,
        runtime_state=runtime_state,
        storage_ref=embeddings_ref,
        config_proto_bytes=config.config_proto_bytes,
    )


class ClassifierDLApproach:
    """Estimator that trains a `ClassifierDLModel` for multi-class text classification."""

    def __init__(
        self,
        label_column: str,
        config: ClassifierDLConfig | None = None,
        input_cols: Sequence[str] = (SENTENCE_EMBEDDINGS,),
        trainer: Trainer | None = None,
        base_model_path: str | Path | None = None,
        uid: str | None = None,
    ):
        self.label_column = label_column
        self.config = config or ClassifierDLConfig()
        self.input_cols = tuple(input_cols)
        self.trainer = trainer
        self.base_model_path = base_model_path
        self.uid = uid or random_uid()

    def fit(self, dataset: pa.Table) -> ClassifierDLModel:
        return train(
            dataset,
            self.label_column,
            self.config,
            input_cols=self.input_cols,
            trainer=self.trainer,
            base_model_path=self.base_model_path,
            uid=self.uid,
        )
