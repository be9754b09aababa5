# classifier_dl/training/session_config.py
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator

import torch
from google.protobuf.message import DecodeError

os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")
import tensorflow as tf  # noqa: E402

tf.get_logger().setLevel("ERROR")

from ..errors import TrainerFailure  # noqa: E402

logger = logging.getLogger(__name__)


def parse_config_proto(raw: bytes) -> "tf.compat.v1.ConfigProto":
    """Decode a serialized tf.compat.v1.ConfigProto."""
    proto = tf.compat.v1.ConfigProto()
    try:
        proto.ParseFromString(bytes(raw))
    except DecodeError as e:
        raise TrainerFailure(f"config_proto_bytes is not a valid ConfigProto: {e}") from e
    return proto


@contextmanager
def torch_session(proto: "tf.compat.v1.ConfigProto") -> Iterator[None]:
    """
    Apply the thread settings of `proto` to torch for the duration of the block.

    Only intra-op parallelism is honoured; torch fixes its inter-op pool on
    first use, so that setting is reported and otherwise ignored.
    """
    previous = torch.get_num_threads()
    if proto.intra_op_parallelism_threads > 0:
        torch.set_num_threads(proto.intra_op_parallelism_threads)
    if proto.inter_op_parallelism_threads > 0:
        logger.debug(
            "Ignoring inter_op_parallelism_threads=%d", proto.inter_op_parallelism_threads
        )
    try:
        yield
    finally:
        torch.set_num_threads(previous)
