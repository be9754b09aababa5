from .errors import (
    ClassifierDLError,
    MissingProvenanceError,
    ResourceLoadError,
    SchemaError,
    TooManyClassesError,
    TrainerFailure,
)
from .training.config import ClassifierDLConfig, Verbose
from .training.approach import ClassifierDLApproach, train
from .pipelines.classifier_dl_model import ClassifierDLModel

__all__ = [
    "ClassifierDLError",
    "MissingProvenanceError",
    "ResourceLoadError",
    "SchemaError",
    "TooManyClassesError",
    "TrainerFailure",
    "ClassifierDLConfig",
    "Verbose",
    "ClassifierDLApproach",
    "train",
    "ClassifierDLModel",
]
