# cascade_detector/merger.py
"""
Grouping of overlapping raw detections into final rectangles.

A face is usually accepted at several neighbouring positions and scales. Raw
windows that overlap enough are joined into one group with a DisjointSet and
each group is averaged into a single rectangle.
"""
from .disjoint_set import DisjointSet
from .geometry import Rectangle, intersect_rect

# Minimum overlap ratio for two windows to belong to the same group
REGIONS_OVERLAP = 0.5


def overlap_ratios(r1, r2):
    """
    Overlap of r1 and r2 normalized against each rectangle.

    The ratios are overlap / (area1 * area1/area2) and overlap / (area2 * area1/area2).
    This is not overlap/area1 and overlap/area2: for rectangles of different
    sizes it is skewed by area1/area2. Changing it changes which windows
    end up grouped together.
    """
    x1 = max(r1.x, r2.x)
    y1 = max(r1.y, r2.y)
    x2 = min(r1.x + r1.width, r2.x + r2.width)
    y2 = min(r1.y + r1.height, r2.y + r2.height)
    overlap = (x1 - x2) * (y1 - y2)
    area1 = r1.width * r1.height
    area2 = r2.width * r2.height
    relative = area1 / area2
    return overlap / (area1 * relative), overlap / (area2 * relative)


def merge_rectangles(rects, regions_overlap=REGIONS_OVERLAP):
    """
    Merge overlapping detections.

    Args:
        rects: Raw Rectangles from the scanner
        regions_overlap: Both overlap ratios must reach this to join two rectangles

    Returns:
        One Rectangle per group with averaged position and size and
        total = group size. Order follows the group representatives and is
        not meaningful.
    """
    rects = list(rects)
    for rect in rects:
        if rect.width <= 0 or rect.height <= 0:
            raise ValueError(f"Cannot merge zero-area rectangle {rect!r}")

    disjoint_set = DisjointSet(len(rects))

    for i, r1 in enumerate(rects):
        for j, r2 in enumerate(rects):
            if not intersect_rect(r1.x, r1.y, r1.x + r1.width, r1.y + r1.height,
                                  r2.x, r2.y, r2.x + r2.width, r2.y + r2.height):
                continue

            ratio1, ratio2 = overlap_ratios(r1, r2)
            if ratio1 >= regions_overlap and ratio2 >= regions_overlap:
                disjoint_set.union(i, j)

    # representative -> [count, sum_x, sum_y, sum_width, sum_height]
    groups = {}
    for k, rect in enumerate(rects):
        rep = disjoint_set.find(k)
        group = groups.setdefault(rep, [0, 0, 0, 0, 0])
        group[0] += 1
        group[1] += rect.x
        group[2] += rect.y
        group[3] += rect.width
        group[4] += rect.height

    merged = []
    for count, sum_x, sum_y, sum_width, sum_height in groups.values():
        merged.append(Rectangle(
            x=int(sum_x / count + 0.5),
            y=int(sum_y / count + 0.5),
            width=int(sum_width / count + 0.5),
            height=int(sum_height / count + 0.5),
            total=count,
        ))

    return merged
