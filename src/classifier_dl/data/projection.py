# classifier_dl/data/projection.py
from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pyarrow as pa
import pyarrow.compute as pc

from ..errors import MissingProvenanceError, SchemaError

SENTENCE_EMBEDDINGS = "sentence_embeddings"
EMBEDDINGS_FIELD = "embeddings"

# Field-metadata keys on annotation columns
ANNOTATOR_TYPE_KEY = b"annotatorType"
STORAGE_REF_KEY = b"ref"

COMPATIBLE_LABEL_TYPES = ("string", "integer", "double", "float")


def _is_compatible_label_type(dtype: pa.DataType) -> bool:
    if pa.types.is_dictionary(dtype):
        dtype = dtype.value_type
    return (
        pa.types.is_string(dtype)
        or pa.types.is_large_string(dtype)
        or pa.types.is_integer(dtype)
        or pa.types.is_float64(dtype)
        or pa.types.is_float32(dtype)
    )


def _field(dataset: pa.Table, column: str) -> pa.Field:
    idx = dataset.schema.get_field_index(column)
    if idx < 0:
        raise SchemaError(
            f"column '{column}' not found; available columns: {dataset.column_names}"
        )
    return dataset.schema.field(idx)


def check_label_column_type(dataset: pa.Table, label_column: str) -> pa.DataType:
    dtype = _field(dataset, label_column).type
    if not _is_compatible_label_type(dtype):
        raise SchemaError(
            f"The label column {label_column} type is {dtype} and it's not compatible. "
            f"Compatible types are {', '.join(COMPATIBLE_LABEL_TYPES)}."
        )
    return dtype


def set_storage_ref(
    dataset: pa.Table,
    column: str,
    ref: str,
    annotator_type: str = SENTENCE_EMBEDDINGS,
) -> pa.Table:
    """Return `dataset` with `column` tagged as an annotation column of `annotator_type`."""
    fld = _field(dataset, column)
    metadata = dict(fld.metadata or {})
    metadata[ANNOTATOR_TYPE_KEY] = annotator_type.encode("utf-8")
    metadata[STORAGE_REF_KEY] = ref.encode("utf-8")
    idx = dataset.schema.get_field_index(column)
    return dataset.set_column(idx, fld.with_metadata(metadata), dataset.column(idx))


def get_storage_ref_from_input(
    dataset: pa.Table,
    input_cols: Sequence[str],
    annotator_type: str = SENTENCE_EMBEDDINGS,
) -> str:
    """
    Resolve the storage reference of the embeddings that feed this classifier.

    Exactly one distinct, non-empty reference must be found among the
    `input_cols` annotated with `annotator_type`.
    """
    refs: List[str] = []
    for col in input_cols:
        idx = dataset.schema.get_field_index(col)
        if idx < 0:
            continue
        metadata = dataset.schema.field(idx).metadata or {}
        if metadata.get(ANNOTATOR_TYPE_KEY, b"").decode("utf-8") != annotator_type:
            continue
        ref = metadata.get(STORAGE_REF_KEY, b"").decode("utf-8")
        if ref and ref not in refs:
            refs.append(ref)

    if len(refs) != 1:
        found = f"found {refs}" if refs else "found none"
        raise MissingProvenanceError(
            f"Could not resolve a single storage reference for {annotator_type} "
            f"in input columns {list(input_cols)} ({found}). Make sure the embeddings "
            "column was produced by an embeddings annotator."
        )
    return refs[0]


def _embeddings_per_row(column: pa.ChunkedArray, input_col: str) -> pa.ChunkedArray:
    dtype = column.type
    if pa.types.is_large_list(dtype) or pa.types.is_fixed_size_list(dtype):
        column = pc.cast(column, pa.list_(dtype.value_field))
        dtype = column.type
    struct_type = dtype.value_type if pa.types.is_list(dtype) else dtype
    if not pa.types.is_struct(struct_type):
        raise SchemaError(
            f"column '{input_col}' is not an annotation column (type {dtype})"
        )
    idx = struct_type.get_field_index(EMBEDDINGS_FIELD)
    if idx < 0:
        raise SchemaError(
            f"annotation column '{input_col}' has no '{EMBEDDINGS_FIELD}' field"
        )

    chunks = []
    for chunk in column.chunks:
        if pa.types.is_list(dtype):
            vectors = pc.struct_field(chunk.values, [idx])
            chunks.append(pa.ListArray.from_arrays(chunk.offsets, vectors))
        else:
            vectors = pc.struct_field(chunk, [idx])
            offsets = pa.array(np.arange(len(chunk) + 1, dtype=np.int32))
            chunks.append(pa.ListArray.from_arrays(offsets, vectors))
    return pa.chunked_array(chunks, type=pa.list_(struct_type.field(idx).type))


def project_training_columns(
    dataset: pa.Table,
    label_column: str,
    input_col: str,
) -> pa.Table:
    """
    Narrow `dataset` to the label (cast to string) and the per-row
    embedding vectors of `input_col`, named `<input_col>.embeddings`.
    """
    labels = dataset.column(_field(dataset, label_column).name)
    if pa.types.is_dictionary(labels.type):
        labels = labels.cast(labels.type.value_type)
    labels = pc.cast(labels, pa.string())
    embeddings = _embeddings_per_row(dataset.column(_field(dataset, input_col).name), input_col)
    return pa.table(
        {
            label_column: labels,
            f"{input_col}.{EMBEDDINGS_FIELD}": embeddings,
        }
    )


def distinct_labels(projected: pa.Table, label_column: str) -> List[str]:
    """Distinct label values in first-seen order."""
    column = projected.column(label_column)
    if column.null_count:
        raise SchemaError(
            f"label column {label_column} contains {column.null_count} null values"
        )
    return pc.unique(column).to_pylist()
