from .dataset_encoder import (
    MAX_CLASSES,
    ClassifierDatasetEncoder,
    ClassifierDatasetEncoderParams,
)

__all__ = ["MAX_CLASSES", "ClassifierDatasetEncoder", "ClassifierDatasetEncoderParams"]
