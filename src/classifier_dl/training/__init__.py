from .config import ClassifierDLConfig, Verbose
from .trainer import (
    ClassifierRuntimeState,
    TorchClassifierTrainer,
    Trainer,
    TrainingInstances,
)

__all__ = [
    "ClassifierDLConfig",
    "Verbose",
    "ClassifierRuntimeState",
    "TorchClassifierTrainer",
    "Trainer",
    "TrainingInstances",
]
