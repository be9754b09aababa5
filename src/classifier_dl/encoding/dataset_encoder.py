# classifier_dl/encoding/dataset_encoder.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pyarrow as pa

from ..errors import SchemaError, TooManyClassesError

logger = logging.getLogger(__name__)

# Hard ceiling on the label vocabulary
MAX_CLASSES = 50

TrainingInstance = Tuple[str, List[float]]


@dataclass
class ClassifierDatasetEncoderParams:
    """
    Serializable parameter set of the label encoder.

    `tags` is the label vocabulary in class-index order.
    """
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"tags": list(self.tags)}

    @classmethod
    def from_dict(cls, raw: Dict[str, Sequence[str]]) -> "ClassifierDatasetEncoderParams":
        return cls(tags=[str(t) for t in raw["tags"]])


class ClassifierDatasetEncoder:
    """
    Maps label values to zero-based class indices and turns a projected
    training table into numeric arrays for the trainer.
    """

    def __init__(self, params: ClassifierDatasetEncoderParams):
        tags = list(params.tags)
        if len(tags) >= MAX_CLASSES:
            raise TooManyClassesError(len(tags), MAX_CLASSES)
        if len(set(tags)) != len(tags):
            raise ValueError("label vocabulary contains duplicate values")

        self.params = params
        self.tag2id: Dict[str, int] = {tag: i for i, tag in enumerate(tags)}
        self.id2tag: Dict[int, str] = {i: tag for tag, i in self.tag2id.items()}

    @property
    def num_classes(self) -> int:
        return len(self.tag2id)

    def encode_tags(self, labels: Iterable[str]) -> np.ndarray:
        try:
            return np.asarray([self.tag2id[str(lbl)] for lbl in labels], dtype=np.int64)
        except KeyError as e:
            raise ValueError(f"label {e.args[0]!r} is not in the encoder vocabulary") from None

    def decode_output(self, indices: Iterable[int]) -> List[str]:
        return [self.id2tag[int(i)] for i in indices]

    def collect_training_instances(
        self,
        projected: pa.Table,
        label_column: str,
    ) -> List[TrainingInstance]:
        """
        One (label, embedding) pair per row of a table produced by
        `project_training_columns`. The first annotation of each row is used;
        rows without annotations are skipped.
        """
        if projected.num_columns != 2 or label_column not in projected.column_names:
            raise SchemaError(
                f"expected a projected table with '{label_column}' and one embeddings column, "
                f"got columns {projected.column_names}"
            )
        emb_name = next(n for n in projected.column_names if n != label_column)

        labels = projected.column(label_column).to_pylist()
        vectors = projected.column(emb_name).to_pylist()

        instances: List[TrainingInstance] = []
        skipped = 0
        for label, row_vectors in zip(labels, vectors):
            if not row_vectors or row_vectors[0] is None:
                skipped += 1
                continue
            instances.append((label, row_vectors[0]))

        if skipped:
            logger.warning("Skipped %d rows without %s annotations", skipped, emb_name)
        return instances

    def extract_sentence_embeddings(self, instances: Sequence[TrainingInstance]) -> np.ndarray:
        if not instances:
            return np.zeros((0, 0), dtype=np.float32)
        widths = {len(vec) for _, vec in instances}
        if len(widths) != 1:
            raise SchemaError(
                f"sentence embeddings must share one width, found widths {sorted(widths)}"
            )
        return np.asarray([vec for _, vec in instances], dtype=np.float32)

    def extract_labels(self, instances: Sequence[TrainingInstance]) -> np.ndarray:
        return self.encode_tags(label for label, _ in instances)
