from .classifier import ClassifierGraphConfig, SentenceEmbeddingClassifier
from .saved_model import SERVING_TAG, SavedModelBundle, read_zipped_saved_model

__all__ = [
    "ClassifierGraphConfig",
    "SentenceEmbeddingClassifier",
    "SERVING_TAG",
    "SavedModelBundle",
    "read_zipped_saved_model",
]
