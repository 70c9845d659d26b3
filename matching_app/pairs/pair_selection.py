"""
Selection of the image pairs to match.

Three policies are supported:
- exhaustive: every unordered pair of images
- sequence overlap: each image against the next W images (video frames)
- predefined: pairs read from a text file
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from matching_app.pipeline.data_structures import Pair, make_pair
from matching_app.pipeline.errors import (
    ConfigurationError,
    EmptySelectionError,
    MissingInputError,
    PairListError,
)


def exhaustive_pairs(n_images: int) -> List[Pair]:
    """
    Return all pairs (i, j) with 0 <= i < j < n_images.

    Args:
        n_images: Number of images in the collection.

    Returns:
        List of n(n-1)/2 canonical pairs in ascending order.
    """
    return [(i, j) for i in range(n_images) for j in range(i + 1, n_images)]


def contiguous_with_overlap(n_images: int, overlap: int) -> List[Pair]:
    """
    Return every pair (i, j) with 0 < j - i <= overlap.

    Args:
        n_images: Number of images in the collection.
        overlap: Number of following images each image is matched against.

    Returns:
        List of canonical pairs in ascending order.
    """
    if overlap <= 0:
        raise ValueError(f"Overlap must be positive, got {overlap}")
    return [
        (i, j)
        for i in range(n_images)
        for j in range(i + 1, min(i + 1 + overlap, n_images))
    ]


def parse_pair_list(lines: Iterable[str], n_images: int) -> List[Pair]:
    """
    Parse a predefined pair list.

    Each non-empty line holds an image index followed by one or more indices
    it must be matched against, e.g. ``0 1 2`` yields (0, 1) and (0, 2).
    Lines starting with ``#`` are ignored. Duplicates are dropped, first
    occurrence kept.

    Args:
        lines: Text lines of the pair list.
        n_images: Number of images; every index must be in [0, n_images).

    Returns:
        List of unique canonical pairs in file order.

    Raises:
        PairListError: On a malformed line, a self pair or an out-of-range index.
    """
    pairs: List[Pair] = []
    seen = set()
    for line_no, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        tokens = line.split()
        if len(tokens) < 2:
            raise PairListError(
                f"Pair list line {line_no}: expected at least two indices, got {line!r}"
            )
        try:
            indices = [int(tok) for tok in tokens]
        except ValueError as e:
            raise PairListError(
                f"Pair list line {line_no}: non-integer index in {line!r}"
            ) from e

        for idx in indices:
            if idx < 0 or idx >= n_images:
                raise PairListError(
                    f"Pair list line {line_no}: index {idx} out of range [0, {n_images})"
                )

        first = indices[0]
        for other in indices[1:]:
            if other == first:
                raise PairListError(
                    f"Pair list line {line_no}: image {first} paired with itself"
                )
            pair = make_pair(first, other)
            if pair not in seen:
                seen.add(pair)
                pairs.append(pair)
    return pairs


def predefined_pairs(path: str, n_images: int) -> List[Pair]:
    """Read and parse a predefined pair list file."""
    try:
        with open(path, "r") as f:
            return parse_pair_list(f, n_images)
    except OSError as e:
        raise MissingInputError(f"Cannot read pair list {path}: {e}") from e


def select_pairs(
    n_images: int,
    overlap: Optional[int] = None,
    pair_list: Optional[str] = None,
) -> List[Pair]:
    """
    Pick pairs according to the active selection mode.

    Sequence overlap and a predefined list are mutually exclusive; when
    neither is given, all pairs are selected.

    Raises:
        ConfigurationError: If both modes are requested.
        EmptySelectionError: If the selection is empty.
    """
    if overlap is not None and pair_list:
        raise ConfigurationError(
            "Incompatible options: --video-mode-matching and --pair-list"
        )

    if overlap is not None:
        pairs = contiguous_with_overlap(n_images, overlap)
    elif pair_list:
        pairs = predefined_pairs(pair_list, n_images)
    else:
        pairs = exhaustive_pairs(n_images)

    if not pairs:
        raise EmptySelectionError("Empty pair list")
    return pairs


def describe_mode(overlap: Optional[int], pair_list: Optional[str]) -> str:
    if overlap is not None:
        return f"sequence matching (overlap {overlap})"
    if pair_list:
        return f"predefined pairs from {pair_list}"
    return "exhaustive matching"


__all__ = [
    "exhaustive_pairs",
    "contiguous_with_overlap",
    "parse_pair_list",
    "predefined_pairs",
    "select_pairs",
    "describe_mode",
]
