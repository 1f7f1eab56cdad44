# cascade_detector/cascade.py
"""
Haar cascade classifiers in their flat numeric encoding.

A trained cascade is stored as one flat list of numbers:

    [min_width, min_height,
     stage_threshold, node_count,
         tilted, rect_count, (x, y, w, h, weight) * rect_count,
         node_threshold, left_value, right_value,
         ...                                   # node_count nodes
     stage_threshold, node_count, ...]         # next stage

decode_cascade() walks that stream once with a single cursor and returns an
immutable Cascade that the evaluator can run without re-parsing.
"""
import json
import os
from collections import namedtuple

import numpy as np

MAX_RECTS_PER_NODE = 3

WeightedRect = namedtuple('WeightedRect', ['x', 'y', 'width', 'height', 'weight'])
Node = namedtuple('Node', ['tilted', 'rects', 'threshold', 'left_value', 'right_value'])
Stage = namedtuple('Stage', ['threshold', 'nodes'])


class Cascade(namedtuple('Cascade', ['min_width', 'min_height', 'stages'])):
    """Decoded classifier cascade, base window min_width x min_height"""

    __slots__ = ()

    @property
    def node_count(self):
        return sum(len(stage.nodes) for stage in self.stages)

    def encode(self):
        """Back to the flat numeric form"""
        data = [self.min_width, self.min_height]
        for stage in self.stages:
            data.extend([stage.threshold, len(stage.nodes)])
            for node in stage.nodes:
                data.extend([1 if node.tilted else 0, len(node.rects)])
                for rect in node.rects:
                    data.extend(rect)
                data.extend([node.threshold, node.left_value, node.right_value])
        return data


class MalformedCascadeError(ValueError):
    """The flat cascade stream disagrees with its own declared counts"""


def _count(value, what, position):
    if not np.isfinite(value) or value < 0 or value != int(value):
        raise MalformedCascadeError(
            f"Invalid {what} {value!r} at position {position}"
        )
    return int(value)


def decode_cascade(data):
    """
    Decode a flat cascade sequence into a Cascade.

    Args:
        data: list, tuple or numpy array of numbers, or an already decoded Cascade

    Raises:
        MalformedCascadeError: if a declared stage, node or rect count runs past
            the end of the stream, a count is not a valid integer or any value
            is NaN or infinite
    """
    if isinstance(data, Cascade):
        return data

    try:
        array = np.asarray(data, dtype=np.float64).ravel()
    except (TypeError, ValueError) as e:
        raise MalformedCascadeError(f"Cascade data is not numeric: {e}") from e

    non_finite = np.flatnonzero(~np.isfinite(array))
    if non_finite.size:
        position = int(non_finite[0])
        raise MalformedCascadeError(
            f"Non-finite value {array[position]!r} at position {position}"
        )

    values = array.tolist()
    length = len(values)
    if length < 2:
        raise MalformedCascadeError("Cascade data must start with min_width, min_height")

    min_width, min_height = values[0], values[1]
    if min_width <= 0 or min_height <= 0:
        raise MalformedCascadeError(
            f"Cascade base window must be positive, got {min_width}x{min_height}"
        )

    stages = []
    cursor = 2
    while cursor < length:
        stage_start = cursor
        if cursor + 2 > length:
            raise MalformedCascadeError(
                f"Truncated stage header at position {cursor} of {length}"
            )
        stage_threshold = values[cursor]
        node_count = _count(values[cursor + 1], 'node count', cursor + 1)
        cursor += 2

        nodes = []
        for _ in range(node_count):
            if cursor + 2 > length:
                raise MalformedCascadeError(
                    f"Stage {len(stages)} declares {node_count} nodes but the data "
                    f"ends at node {len(nodes)}"
                )
            tilted = values[cursor] != 0
            rect_count = _count(values[cursor + 1], 'rect count', cursor + 1)
            if not 1 <= rect_count <= MAX_RECTS_PER_NODE:
                raise MalformedCascadeError(
                    f"Node rect count must be 1..{MAX_RECTS_PER_NODE}, got {rect_count} "
                    f"at position {cursor + 1}"
                )
            cursor += 2

            record_end = cursor + rect_count * 5 + 3
            if record_end > length:
                raise MalformedCascadeError(
                    f"Node at position {cursor - 2} needs {record_end - cursor + 2} "
                    f"values but only {length - cursor + 2} remain"
                )

            rects = tuple(
                WeightedRect(*values[cursor + 5 * r:cursor + 5 * r + 5])
                for r in range(rect_count)
            )
            cursor += rect_count * 5
            node_threshold, left_value, right_value = values[cursor:cursor + 3]
            cursor += 3

            nodes.append(Node(tilted, rects, node_threshold, left_value, right_value))

        if cursor > length:
            raise MalformedCascadeError(
                f"Stage starting at position {stage_start} reads past the end of the data"
            )
        stages.append(Stage(stage_threshold, tuple(nodes)))

    return Cascade(min_width, min_height, tuple(stages))


def load_cascade(path):
    """
    Load a flat cascade from disk.

    JSON files may hold the flat list itself or an object with a "data" list.
    .npy files hold the flat array.
    """
    path = str(path)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Cascade file not found: {path}")

    if path.endswith('.npy'):
        return decode_cascade(np.load(path))

    with open(path, 'r') as f:
        content = json.load(f)

    if isinstance(content, dict):
        if 'data' not in content:
            raise MalformedCascadeError(f"Cascade file {path} has no 'data' list")
        content = content['data']

    return decode_cascade(content)
