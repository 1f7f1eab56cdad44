# cascade_detector/evaluator.py
"""
Stage-by-stage evaluation of a Haar cascade on one detection window.

Tables are flat row-major sequences (index = row * width + col) as produced
by IntegralImages.flat(). Feature rectangles that reach outside the table read
zero.
"""
import math

from .integral_image import corner_sum


def _at(table, index):
    if 0 <= index < len(table):
        return table[index]
    return 0


def rect_sum(table, width, left, top, rect_width, rect_height):
    """Upright rectangle sum: SAT(A) - SAT(B) - SAT(D) + SAT(C)"""
    w1 = top * width + left
    w2 = w1 + rect_width
    w3 = w1 + rect_height * width
    w4 = w3 + rect_width
    return _at(table, w1) - _at(table, w2) - _at(table, w3) + _at(table, w4)


def tilted_rect_sum(table, width, left, top, rect_width, rect_height):
    """
    45 degree rectangle sum on the rotated table:

        RSAT(x-h+w, y+w+h-1) + RSAT(x, y-1) - RSAT(x-h, y+h-1) - RSAT(x+w, y+w-1)

    A tilted w x h rectangle covers 2*w*h pixels.
    """
    w1 = left - rect_height + rect_width + (top + rect_width + rect_height - 1) * width
    w2 = left + (top - 1) * width
    w3 = left - rect_height + (top + rect_height - 1) * width
    w4 = left + rect_width + (top + rect_width - 1) * width
    return _at(table, w1) + _at(table, w2) - _at(table, w3) - _at(table, w4)


def window_statistics(sum_table, square_table, row, col, width, block_width, block_height):
    """
    Mean and standard deviation of the window anchored at (row, col).

    The standard deviation falls back to 1 when rounding leaves the variance
    at zero or below.
    """
    inverse_area = 1.0 / (block_width * block_height)
    a = row * width + col
    mean = corner_sum(sum_table, a, width, block_width, block_height) * inverse_area
    variance = corner_sum(square_table, a, width, block_width, block_height) * inverse_area - mean * mean

    standard_deviation = 1.0
    if variance > 0:
        standard_deviation = math.sqrt(variance)

    return mean, standard_deviation


def node_sum(node, sum_table, tilted_table, row, col, width, scale):
    """Weighted sum of a node's feature rectangles at the given scale"""
    rects_sum = 0.0
    for rect in node.rects:
        left = int(col + rect.x * scale + 0.5)
        top = int(row + rect.y * scale + 0.5)
        rect_width = int(rect.width * scale + 0.5)
        rect_height = int(rect.height * scale + 0.5)

        if node.tilted:
            rects_sum += tilted_rect_sum(tilted_table, width, left, top,
                                         rect_width, rect_height) * rect.weight
        else:
            rects_sum += rect_sum(sum_table, width, left, top,
                                  rect_width, rect_height) * rect.weight
    return rects_sum


def passes_cascade(cascade, sum_table, square_table, tilted_table, row, col,
                   width, block_width, block_height, scale):
    """
    Run every stage of the cascade on one window.

    Each node adds left_value to its stage when the normalized feature sum is
    below node.threshold * std, else right_value. The first stage whose sum
    falls below its threshold rejects the window and no later stage runs.

    Returns:
        True if the window passes all stages
    """
    inverse_area = 1.0 / (block_width * block_height)
    _, standard_deviation = window_statistics(
        sum_table, square_table, row, col, width, block_width, block_height
    )

    for stage in cascade.stages:
        stage_sum = 0.0
        for node in stage.nodes:
            rects_sum = node_sum(node, sum_table, tilted_table, row, col, width, scale)

            if rects_sum * inverse_area < node.threshold * standard_deviation:
                stage_sum += node.left_value
            else:
                stage_sum += node.right_value

        if stage_sum < stage.threshold:
            return False

    return True
