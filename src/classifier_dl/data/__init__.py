from .projection import (
    SENTENCE_EMBEDDINGS,
    check_label_column_type,
    distinct_labels,
    get_storage_ref_from_input,
    project_training_columns,
    set_storage_ref,
)

__all__ = [
    "SENTENCE_EMBEDDINGS",
    "check_label_column_type",
    "distinct_labels",
    "get_storage_ref_from_input",
    "project_training_columns",
    "set_storage_ref",
]
