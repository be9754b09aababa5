# classifier_dl/errors.py
from __future__ import annotations


class ClassifierDLError(Exception):
    """Base class for every failure raised while training a classifier."""


class SchemaError(ClassifierDLError):
    """The training dataset does not have the columns or types we need."""


class MissingProvenanceError(ClassifierDLError):
    """No single embeddings storage reference could be resolved from the input columns."""


class TooManyClassesError(ClassifierDLError):
    def __init__(self, num_classes: int, limit: int):
        self.num_classes = num_classes
        self.limit = limit
        super().__init__(
            f"The total unique number of classes must be less than {limit}. "
            f"Currently is {num_classes}"
        )


class ResourceLoadError(ClassifierDLError):
    """The bundled base model is missing or malformed."""


class TrainerFailure(ClassifierDLError):
    """Raised by the default trainer when optimisation cannot proceed."""
