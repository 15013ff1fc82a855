"""Incremental block updates after text edits.

Exports
-------
update_blocks
    Reconcile a block tree with a batch of document changes.
apply_changes
    Apply document changes (pre-edit offsets) to a string.
batch_text_edits
    Convert editor edits to changes ordered for sequential application.
text_edit_to_document_change
    Convert a single editor edit.
compute_signature
    Fingerprint a block for id carry-over.
"""

from .changes import apply_changes, batch_text_edits, text_edit_to_document_change
from .matcher import BlockSignature, compute_signature
from .updater import update_blocks

__all__ = [
    "BlockSignature",
    "apply_changes",
    "batch_text_edits",
    "compute_signature",
    "text_edit_to_document_change",
    "update_blocks",
]
