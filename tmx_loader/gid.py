"""
Global tile identifier (GID) decoding

=============================================================================
BIT LAYOUT
=============================================================================

Every cell of a TMX tile layer stores a 32-bit unsigned GID:

    bit 31      bit 30      bit 29      bits 28..0
    +-----------+-----------+-----------+---------------------------+
    | flip H    | flip V    | flip diag | tile index (0 = no tile)  |
    +-----------+-----------+-----------+---------------------------+

The layout is fixed by the Tiled format. The diagonal flag swaps the x and
y axes (anti-diagonal flip); combined with H and V it expresses the 90 degree
rotations:

    rotate 90  cw:  diag + H
    rotate 180:     H + V
    rotate 270 cw:  diag + V

The three flags never change the index: clearing them is lossless, and
setting them back reproduces the original GID bit for bit.

=============================================================================
"""

from typing import NamedTuple, Tuple

import numpy as np

FLIPPED_HORIZONTALLY_FLAG = 0x80000000
FLIPPED_VERTICALLY_FLAG = 0x40000000
FLIPPED_DIAGONALLY_FLAG = 0x20000000
ALL_FLIP_FLAGS = (
    FLIPPED_HORIZONTALLY_FLAG | FLIPPED_VERTICALLY_FLAG | FLIPPED_DIAGONALLY_FLAG
)
TILE_INDEX_MASK = ~ALL_FLIP_FLAGS & 0xFFFFFFFF
GID_MAX = 0xFFFFFFFF


class TileRef(NamedTuple):
    """A decoded cell: tile index plus orientation flags."""

    tile_index: int
    flip_horizontal: bool = False
    flip_vertical: bool = False
    flip_diagonal: bool = False

    @property
    def is_empty(self) -> bool:
        return self.tile_index == 0

    @property
    def flags(self) -> Tuple[bool, bool, bool]:
        return self.flip_horizontal, self.flip_vertical, self.flip_diagonal

    def encode(self) -> int:
        return encode_gid(self)


EMPTY_TILE = TileRef(0)


def remove_tile_flags(gid: int) -> int:
    """Strip the three flip bits, leaving the tile index."""
    return gid & TILE_INDEX_MASK


def decode_gid(gid: int) -> TileRef:
    """
    Split a raw 32-bit GID into its tile index and flip flags.

    Every value in 0..0xFFFFFFFF is valid; anything else is not a GID and
    raises ValueError.
    """
    if not 0 <= gid <= GID_MAX:
        raise ValueError(f"GID {gid!r} is not a 32-bit unsigned value")
    return TileRef(
        gid & TILE_INDEX_MASK,
        bool(gid & FLIPPED_HORIZONTALLY_FLAG),
        bool(gid & FLIPPED_VERTICALLY_FLAG),
        bool(gid & FLIPPED_DIAGONALLY_FLAG),
    )


def encode_gid(ref: TileRef) -> int:
    """Pack a TileRef back into a raw GID."""
    if not 0 <= ref.tile_index <= TILE_INDEX_MASK:
        raise ValueError(f"tile index {ref.tile_index} does not fit in 29 bits")
    gid = ref.tile_index
    if ref.flip_horizontal:
        gid |= FLIPPED_HORIZONTALLY_FLAG
    if ref.flip_vertical:
        gid |= FLIPPED_VERTICALLY_FLAG
    if ref.flip_diagonal:
        gid |= FLIPPED_DIAGONALLY_FLAG
    return gid


def decode_gid_array(gids) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Vectorized decode_gid.

    Parameters:
    -----------
    gids : array-like of uint32
        Raw GIDs, any shape

    Returns:
    --------
    (indices, flip_h, flip_v, flip_d) : uint32 array and three bool arrays,
    each with the shape of gids
    """
    gids = np.asarray(gids, dtype=np.uint32)
    indices = gids & np.uint32(TILE_INDEX_MASK)
    flip_h = (gids & np.uint32(FLIPPED_HORIZONTALLY_FLAG)) != 0
    flip_v = (gids & np.uint32(FLIPPED_VERTICALLY_FLAG)) != 0
    flip_d = (gids & np.uint32(FLIPPED_DIAGONALLY_FLAG)) != 0
    return indices, flip_h, flip_v, flip_d


def decode_gid_sequence(gids) -> Tuple[TileRef, ...]:
    """Decode a flat run of GIDs into TileRefs, one per input value."""
    indices, flip_h, flip_v, flip_d = decode_gid_array(np.ravel(gids))
    return tuple(
        TileRef(*cell)
        for cell in zip(indices.tolist(), flip_h.tolist(), flip_v.tolist(), flip_d.tolist())
    )
