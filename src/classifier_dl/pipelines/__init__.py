from .classifier_dl_model import ClassifierDLModel, assemble_model

__all__ = ["ClassifierDLModel", "assemble_model"]
