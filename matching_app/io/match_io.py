"""
Text I/O for pairwise match sets.

Format, repeated for each pair in ascending (i, j) order:

    i j
    count
    a b      (count lines, feature index in image i then in image j)
"""

from __future__ import annotations

from typing import Iterable, List

from matching_app.pipeline.data_structures import IndMatches, PairWiseMatches


def format_pairwise_matches(matches: PairWiseMatches) -> str:
    """
    Serialize a match set to its text representation.

    Args:
        matches: Mapping of canonical pair -> ordered correspondences.

    Returns:
        Text with pairs sorted, correspondences in stored order.
    """
    lines: List[str] = []
    for (i, j) in sorted(matches):
        corr = matches[(i, j)]
        lines.append(f"{i} {j}")
        lines.append(str(len(corr)))
        lines.extend(f"{a} {b}" for a, b in corr)
    return "".join(line + "\n" for line in lines)


def parse_pairwise_matches(lines: Iterable[str]) -> PairWiseMatches:
    """
    Parse the text representation written by `format_pairwise_matches`.

    Raises:
        ValueError: If the text is truncated or malformed.
    """
    tokens = [line.split() for line in lines if line.strip()]
    matches: PairWiseMatches = {}
    pos = 0
    while pos < len(tokens):
        header = tokens[pos]
        if len(header) != 2 or pos + 1 >= len(tokens) or len(tokens[pos + 1]) != 1:
            raise ValueError(f"Malformed match block at entry {pos}: {header}")
        i, j = int(header[0]), int(header[1])
        count = int(tokens[pos + 1][0])
        pos += 2
        if pos + count > len(tokens):
            raise ValueError(f"Truncated match block for pair ({i}, {j})")

        corr: IndMatches = []
        for row in tokens[pos : pos + count]:
            if len(row) != 2:
                raise ValueError(f"Malformed correspondence for pair ({i}, {j}): {row}")
            corr.append((int(row[0]), int(row[1])))
        pos += count
        matches[(i, j)] = corr
    return matches


__all__ = ["format_pairwise_matches", "parse_pairwise_matches"]
