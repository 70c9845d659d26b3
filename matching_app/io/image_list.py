"""
Loader for the image list (`lists.txt`) describing the image collection.

The expected format of each line is one of:

    imgname.jpg;width;height
    imgname.jpg;width;height;focal
    imgname.jpg;width;height;focal;camera_maker;camera_model
    imgname.jpg;width;height;k11;k12;k13;k21;k22;k23;k31;k32;k33

The first form has unknown intrinsics. With a focal length the principal
point is assumed at the image center.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

import numpy as np

from matching_app.pipeline.data_structures import ImageRecord, IntrinsicGroup
from matching_app.pipeline.errors import MissingInputError


def _intrinsic_from_fields(fields: List[str], width: int, height: int) -> IntrinsicGroup:
    if len(fields) == 3:
        return IntrinsicGroup(K=np.eye(3), known=False, focal=-1.0, width=width, height=height)

    if len(fields) in (4, 5, 6):
        focal = float(fields[3])
        K = np.array(
            [
                [focal, 0.0, width / 2.0],
                [0.0, focal, height / 2.0],
                [0.0, 0.0, 1.0],
            ],
            dtype=np.float64,
        )
        return IntrinsicGroup(K=K, known=True, focal=focal, width=width, height=height)

    if len(fields) == 12:
        K = np.array([float(x) for x in fields[3:12]], dtype=np.float64).reshape(3, 3)
        return IntrinsicGroup(K=K, known=True, focal=float(K[0, 0]), width=width, height=height)

    raise ValueError(f"unexpected number of fields ({len(fields)})")


def parse_image_list(
    lines: Iterable[str],
) -> Tuple[List[ImageRecord], List[IntrinsicGroup]]:
    """
    Parse image list lines into image records and intrinsic groups.

    Every image gets its own intrinsic group; see `intrinsics_equal` for
    comparing groups.

    Args:
        lines: Text lines of the image list.

    Returns:
        Tuple of (images, intrinsics) where `images[k].intrinsic_id` indexes
        into `intrinsics`.

    Raises:
        MissingInputError: If a line is malformed or the list is empty.
    """
    images: List[ImageRecord] = []
    intrinsics: List[IntrinsicGroup] = []

    for line_no, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        fields = [f.strip() for f in line.split(";")]
        try:
            width = int(fields[1])
            height = int(fields[2])
            group = _intrinsic_from_fields(fields, width, height)
        except (IndexError, ValueError) as e:
            raise MissingInputError(
                f"Empty or invalid image list: line {line_no} ({line!r}): {e}"
            ) from e

        intrinsics.append(group)
        images.append(
            ImageRecord(
                id=len(images),
                filename=fields[0],
                width=width,
                height=height,
                intrinsic_id=len(intrinsics) - 1,
            )
        )

    if not images:
        raise MissingInputError("Empty or invalid image list.")
    return images, intrinsics


def intrinsics_equal(a: IntrinsicGroup, b: IntrinsicGroup) -> bool:
    """Return True if two groups share the same calibration matrix."""
    return bool(np.array_equal(a.K, b.K))


def count_distinct_calibrations(intrinsics: List[IntrinsicGroup]) -> int:
    """Count distinct calibration matrices among the known groups."""
    distinct: List[IntrinsicGroup] = []
    for group in intrinsics:
        if not group.known:
            continue
        if not any(intrinsics_equal(group, other) for other in distinct):
            distinct.append(group)
    return len(distinct)


__all__ = [
    "parse_image_list",
    "intrinsics_equal",
    "count_distinct_calibrations",
]
