"""Carry block ids from an old block list over to a re-parsed one.

Blocks are compared through :class:`BlockSignature` fingerprints.  An LCS
over the signatures finds the blocks that survived unchanged; within each
gap between matches, blocks of the same type are paired by position, the
way an edited paragraph keeps its identity.  Everything left over gets a
fresh content-derived id.
"""

from __future__ import annotations

from dataclasses import dataclass

from mdmapper.ids import (
    content_hash,
    ensure_unique_id,
    fingerprint,
    generate_block_id,
    iter_blocks,
)
from mdmapper.models import Block, BlockType

# Above this many DP cells only the common prefix and suffix are matched.
LCS_CELL_LIMIT = 250_000


@dataclass(frozen=True)
class BlockSignature:
    """Fingerprint of a block's type, content and children (ids and ranges excluded)."""

    block_type: BlockType
    content_hash: str
    children_hash: str | None


def compute_signature(block: Block) -> BlockSignature:
    children_hash = None
    if block.children is not None:
        children_hash = fingerprint([
            (s.block_type.value, s.content_hash, s.children_hash)
            for s in (compute_signature(c) for c in block.children)
        ])
    return BlockSignature(
        block_type=block.type,
        content_hash=content_hash(block.content),
        children_hash=children_hash,
    )


def lcs_match(
    old_sigs: list[BlockSignature],
    new_sigs: list[BlockSignature],
) -> list[tuple[int, int]]:
    """Return matched ``(old_idx, new_idx)`` pairs in order.

    The common prefix and suffix are matched directly; the DP table only
    covers the middle, and is skipped when it would exceed
    :data:`LCS_CELL_LIMIT` cells.
    """
    m, n = len(old_sigs), len(new_sigs)
    prefix = 0
    while prefix < m and prefix < n and old_sigs[prefix] == new_sigs[prefix]:
        prefix += 1
    suffix = 0
    while (
        suffix < m - prefix
        and suffix < n - prefix
        and old_sigs[m - 1 - suffix] == new_sigs[n - 1 - suffix]
    ):
        suffix += 1

    pairs = [(i, i) for i in range(prefix)]
    old_mid = old_sigs[prefix:m - suffix]
    new_mid = new_sigs[prefix:n - suffix]
    if old_mid and new_mid and len(old_mid) * len(new_mid) <= LCS_CELL_LIMIT:
        pairs.extend((i + prefix, j + prefix) for i, j in _lcs_pairs(old_mid, new_mid))
    pairs.extend((m - suffix + k, n - suffix + k) for k in range(suffix))
    return pairs


def _lcs_pairs(a: list[BlockSignature], b: list[BlockSignature]) -> list[tuple[int, int]]:
    m, n = len(a), len(b)
    dp: list[list[int]] = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        for j in range(1, n + 1):
            if a[i - 1] == b[j - 1]:
                dp[i][j] = dp[i - 1][j - 1] + 1
            else:
                dp[i][j] = max(dp[i - 1][j], dp[i][j - 1])

    pairs: list[tuple[int, int]] = []
    i, j = m, n
    while i > 0 and j > 0:
        if a[i - 1] == b[j - 1]:
            pairs.append((i - 1, j - 1))
            i -= 1
            j -= 1
        elif dp[i - 1][j] >= dp[i][j - 1]:
            i -= 1
        else:
            j -= 1
    pairs.reverse()
    return pairs


def _pair_blocks(old: list[Block], new: list[Block]) -> list[tuple[Block, Block]]:
    """Pair unchanged blocks, then same-type blocks in equal-sized gaps."""
    pairs = lcs_match([compute_signature(b) for b in old], [compute_signature(b) for b in new])
    result: list[tuple[Block, Block]] = []
    prev_i, prev_j = -1, -1
    for i, j in pairs + [(len(old), len(new))]:
        gap_old = old[prev_i + 1:i]
        gap_new = new[prev_j + 1:j]
        if len(gap_old) == len(gap_new):
            result.extend((o, b) for o, b in zip(gap_old, gap_new) if o.type == b.type)
        if i < len(old) and j < len(new):
            result.append((old[i], new[j]))
        prev_i, prev_j = i, j
    return result


def carry_over_ids(old: list[Block], new: list[Block], used: set[str]) -> None:
    """Copy ids from *old* onto matching blocks of *new*, recursively.

    Carried ids are added to *used*.  Blocks that could not be matched keep
    an empty id; :func:`assign_fresh_ids` labels them afterwards.
    """
    for old_block, new_block in _pair_blocks(old, new):
        if not old_block.id or old_block.id in used:
            continue
        new_block.id = old_block.id
        used.add(old_block.id)
        if old_block.children and new_block.children:
            carry_over_ids(old_block.children, new_block.children, used)


def assign_fresh_ids(blocks: list[Block], used: set[str]) -> None:
    """Give every block without an id a unique content-derived one."""
    next_suffix: dict[str, int] = {}
    for block in iter_blocks(blocks):
        if not block.id:
            base = generate_block_id(block.type, block.content)
            block.id = ensure_unique_id(base, used, next_suffix)
