# classifier_dl/models/classifier.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Sequence

import torch
import torch.nn as nn

ACTIVATIONS = {
    "relu": nn.ReLU,
    "gelu": nn.GELU,
    "tanh": nn.Tanh,
}


@dataclass
class ClassifierGraphConfig:
    """
    Architecture of the feed-forward classifier shipped in the base model bundle.

    Input and output widths are not part of the graph: they are fixed at
    training time from the embeddings and the label vocabulary.
    """
    hidden_sizes: Sequence[int] = field(default_factory=lambda: (512,))
    activation: str = "relu"
    use_layer_norm: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["hidden_sizes"] = list(self.hidden_sizes)
        return d

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ClassifierGraphConfig":
        allowed = set(cls.__dataclass_fields__.keys())
        kwargs = {k: v for k, v in raw.items() if k in allowed}
        if "hidden_sizes" in kwargs:
            kwargs["hidden_sizes"] = tuple(int(h) for h in kwargs["hidden_sizes"])
        if not isinstance(kwargs.get("activation", ""), str):
            raise ValueError(f"activation must be a string, got {kwargs['activation']!r}")
        return cls(**kwargs)


class SentenceEmbeddingClassifier(nn.Module):
    """
    MLP over sentence embeddings:
    Dropout -> [Linear -> (LayerNorm) -> act -> Dropout]* -> Linear
    """
    def __init__(
        self,
        input_dim: int,
        num_classes: int,
        graph: ClassifierGraphConfig | None = None,
        dropout: float = 0.5,
    ):
        super().__init__()
        graph = graph or ClassifierGraphConfig()
        act_key = graph.activation.lower()
        if act_key not in ACTIVATIONS:
            raise ValueError(f"activation must be one of {sorted(ACTIVATIONS)}, got {graph.activation!r}")
        act_cls = ACTIVATIONS[act_key]

        self.input_dim = input_dim
        self.num_classes = num_classes

        layers: list[nn.Module] = [nn.Dropout(dropout)]
        in_dim = input_dim
        for hdim in graph.hidden_sizes:
            layers.append(nn.Linear(in_dim, hdim))
            if graph.use_layer_norm:
                layers.append(nn.LayerNorm(hdim))
            layers.append(act_cls())
            layers.append(nn.Dropout(dropout))
            in_dim = hdim
        layers.append(nn.Linear(in_dim, num_classes))

        self.net = nn.Sequential(*layers)

    def forward(
        self,
        embeddings: torch.Tensor,
        labels: Optional[torch.Tensor] = None,
    ) -> Dict[str, torch.Tensor]:
        logits = self.net(embeddings)
        result: Dict[str, torch.Tensor] = {"logits": logits}
        if labels is not None:
            result["loss"] = nn.functional.cross_entropy(logits, labels)
        return result
