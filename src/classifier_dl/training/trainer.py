# classifier_dl/training/trainer.py
from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple

import numpy as np
import torch
from torch.utils.data import DataLoader, TensorDataset

from ..errors import TrainerFailure
from ..models.classifier import ClassifierGraphConfig, SentenceEmbeddingClassifier
from ..models.saved_model import SavedModelBundle
from ..utils import close_logger, setup_logger
from .config import ClassifierDLConfig, Verbose

logger = logging.getLogger(__name__)


@dataclass
class TrainingInstances:
    embeddings: np.ndarray
    labels: np.ndarray
    num_classes: int

    def __post_init__(self):
        if self.embeddings.ndim != 2:
            raise ValueError(f"embeddings must be 2-D, got shape {self.embeddings.shape}")
        if len(self.embeddings) != len(self.labels):
            raise ValueError(
                f"{len(self.embeddings)} embeddings but {len(self.labels)} labels"
            )

    def __len__(self) -> int:
        return len(self.labels)

    @property
    def input_dim(self) -> int:
        return int(self.embeddings.shape[1])


@dataclass
class ClassifierRuntimeState:
    """Everything needed to rebuild the trained network for inference."""
    graph: ClassifierGraphConfig
    input_dim: int
    num_classes: int
    dropout: float
    state_dict: Dict[str, torch.Tensor] = field(repr=False)
    tags: Tuple[str, ...] = ("serve",)

    def build_module(self, map_location: str | torch.device = "cpu") -> SentenceEmbeddingClassifier:
        model = SentenceEmbeddingClassifier(
            input_dim=self.input_dim,
            num_classes=self.num_classes,
            graph=self.graph,
            dropout=self.dropout,
        )
        model.load_state_dict(self.state_dict, strict=True)
        return model.to(map_location).eval()

    def to_meta(self) -> Dict[str, Any]:
        return {
            "graph": self.graph.to_dict(),
            "input_dim": self.input_dim,
            "num_classes": self.num_classes,
            "dropout": self.dropout,
            "tags": list(self.tags),
        }

    @classmethod
    def from_meta(cls, meta: Dict[str, Any], state_dict: Dict[str, torch.Tensor]) -> "ClassifierRuntimeState":
        return cls(
            graph=ClassifierGraphConfig.from_dict(meta["graph"]),
            input_dim=int(meta["input_dim"]),
            num_classes=int(meta["num_classes"]),
            dropout=float(meta["dropout"]),
            state_dict=state_dict,
            tags=tuple(meta.get("tags", ("serve",))),
        )


class Trainer(Protocol):
    def fit(
        self,
        base_model: SavedModelBundle,
        instances: TrainingInstances,
        config: ClassifierDLConfig,
        *,
        generator: torch.Generator,
        run_id: str,
    ) -> ClassifierRuntimeState:
        ...


@dataclass
class _RunLogs:
    console: Optional[logging.Logger] = None
    file: Optional[logging.Logger] = None

    def close(self) -> None:
        for run_logger in (self.console, self.file):
            if run_logger is not None:
                close_logger(run_logger)


class TorchClassifierTrainer:
    """
    Default trainer: fits the bundled feed-forward graph on sentence
    embeddings with AdamW and cross-entropy.

    All randomness comes from `generator`. Weight init and dropout run inside
    a forked RNG so the process-wide torch generator is left untouched.
    """

    def __init__(self, device: str | torch.device | None = None):
        self.device = torch.device(device or ("cuda" if torch.cuda.is_available() else "cpu"))

    def fit(
        self,
        base_model: SavedModelBundle,
        instances: TrainingInstances,
        config: ClassifierDLConfig,
        *,
        generator: torch.Generator,
        run_id: str,
    ) -> ClassifierRuntimeState:
        if len(instances) == 0:
            raise TrainerFailure("no training instances to fit on")

        run_logs = _RunLogs()
        if config.verbose < Verbose.SILENT:
            # child of the module logger: prints to stdout and still propagates
            run_logs.console = setup_logger(f"{__name__}.{run_id}")
        if config.enable_output_logs:
            run_logs.file = setup_logger(
                f"classifier_dl.runs.{run_id}",
                file_path=config.output_logs_path / f"{run_id}.log",
                stream=False,
                propagate=False,
            )

        try:
            session: contextlib.AbstractContextManager = contextlib.nullcontext()
            if config.config_proto_bytes is not None:
                from .session_config import parse_config_proto, torch_session
                session = torch_session(parse_config_proto(config.config_proto_bytes))
            with session:
                return self._fit(base_model, instances, config, generator, run_logs)
        finally:
            run_logs.close()

    def _report(
        self,
        message: str,
        level: Verbose,
        config: ClassifierDLConfig,
        run_logs: "_RunLogs",
    ) -> None:
        if run_logs.console is not None and config.verbose <= level:
            run_logs.console.info(message)
        if run_logs.file is not None and level >= Verbose.EPOCHS:
            run_logs.file.info(message)

    def _split(
        self,
        n: int,
        validation_split: float,
        generator: torch.Generator,
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        perm = torch.randperm(n, generator=generator)
        n_val = int(n * validation_split)
        if validation_split > 0 and n_val == 0:
            logger.warning(
                "validation_split=%.3f leaves no validation instances out of %d; training on all",
                validation_split, n,
            )
        return perm[n_val:], perm[:n_val]

    def _fit(
        self,
        base_model: SavedModelBundle,
        instances: TrainingInstances,
        config: ClassifierDLConfig,
        generator: torch.Generator,
        run_logs: "_RunLogs",
    ) -> ClassifierRuntimeState:
        device = self.device
        x = torch.from_numpy(np.ascontiguousarray(instances.embeddings, dtype=np.float32))
        y = torch.from_numpy(np.ascontiguousarray(instances.labels, dtype=np.int64))

        train_idx, val_idx = self._split(len(instances), config.validation_split, generator)
        train_loader = DataLoader(
            TensorDataset(x[train_idx], y[train_idx]),
            batch_size=config.batch_size,
            shuffle=True,
            generator=generator,
        )
        x_val, y_val = x[val_idx].to(device), y[val_idx].to(device)

        self._report(
            f"Training started - epochs: {config.max_epochs} - learning_rate: {config.lr} "
            f"- batch_size: {config.batch_size} - training_examples: {len(train_idx)} "
            f"- classes: {instances.num_classes}",
            Verbose.TRAINING_STAT, config, run_logs,
        )

        init_seed = int(torch.randint(0, 2**62, (1,), generator=generator).item())
        fork_devices = [device.index or 0] if device.type == "cuda" else []

        with torch.random.fork_rng(devices=fork_devices):
            torch.manual_seed(init_seed)
            model = SentenceEmbeddingClassifier(
                input_dim=instances.input_dim,
                num_classes=instances.num_classes,
                graph=base_model.graph,
                dropout=config.dropout,
            )
            if base_model.variables is not None:
                try:
                    model.load_state_dict(base_model.variables, strict=True)
                except RuntimeError as e:
                    raise TrainerFailure(
                        f"base model variables do not fit a {instances.input_dim} -> "
                        f"{instances.num_classes} classifier: {e}"
                    ) from e
            model.to(device)

            optimizer = torch.optim.AdamW(model.parameters(), lr=config.lr)

            best_state: Dict[str, torch.Tensor] | None = None
            best_val_acc = -1.0
            started = time.perf_counter()

            for epoch in range(config.max_epochs):
                epoch_start = time.perf_counter()
                model.train()
                loss_sum = 0.0
                correct = 0
                seen = 0
                batches = 0
                for batch_x, batch_y in train_loader:
                    batch_x, batch_y = batch_x.to(device), batch_y.to(device)
                    optimizer.zero_grad(set_to_none=True)
                    out = model(batch_x, labels=batch_y)
                    loss = out["loss"]
                    if not torch.isfinite(loss):
                        raise TrainerFailure(
                            f"loss became {loss.item()} at epoch {epoch + 1}, batch {batches + 1}"
                        )
                    loss.backward()
                    optimizer.step()

                    batches += 1
                    loss_sum += float(loss.detach()) * batch_y.size(0)
                    correct += int((out["logits"].argmax(dim=1) == batch_y).sum().item())
                    seen += batch_y.size(0)
                    self._report(
                        f"Epoch {epoch + 1} batch {batches} - loss: {loss.item():.4f}",
                        Verbose.PER_STEP, config, run_logs,
                    )

                elapsed = time.perf_counter() - epoch_start
                self._report(
                    f"Epoch {epoch + 1}/{config.max_epochs} - {elapsed:.2f}s "
                    f"- loss: {loss_sum / max(1, seen):.4f} - acc: {correct / max(1, seen):.4f} "
                    f"- batches: {batches}",
                    Verbose.EPOCHS, config, run_logs,
                )

                if len(val_idx) > 0:
                    val_acc = self._evaluate(model, x_val, y_val)
                    self._report(
                        f"Quality on validation dataset ({config.validation_split * 100:.1f}%), "
                        f"validation examples = {len(val_idx)} - acc: {val_acc:.4f}",
                        Verbose.EPOCHS, config, run_logs,
                    )
                    if val_acc > best_val_acc:
                        best_val_acc = val_acc
                        best_state = {k: v.detach().cpu().clone() for k, v in model.state_dict().items()}

        if best_state is None:
            best_state = {k: v.detach().cpu().clone() for k, v in model.state_dict().items()}

        summary = f"Training completed in {time.perf_counter() - started:.2f}s"
        if best_val_acc >= 0:
            summary += f" - best validation acc: {best_val_acc:.4f}"
        self._report(summary, Verbose.TRAINING_STAT, config, run_logs)

        return ClassifierRuntimeState(
            graph=base_model.graph,
            input_dim=instances.input_dim,
            num_classes=instances.num_classes,
            dropout=config.dropout,
            state_dict=best_state,
            tags=base_model.tags,
        )

    @torch.inference_mode()
    def _evaluate(self, model: SentenceEmbeddingClassifier, x: torch.Tensor, y: torch.Tensor) -> float:
        model.eval()
        logits = model(x)["logits"]
        return float((logits.argmax(dim=1) == y).float().mean().item())
