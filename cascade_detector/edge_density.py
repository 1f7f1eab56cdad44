# cascade_detector/edge_density.py
"""
Edge density pruning.

Low texture windows (sky, walls, plain background) almost never hold an
object. The Sobel magnitude integral gives the edge density of any block in
O(1), so such windows are dropped before the cascade runs.
"""
from .integral_image import corner_sum

# Per-pixel edge magnitude that counts as a density of 1.0
MAX_EDGE_VALUE = 255


def block_edge_density(sobel_table, row, col, width, block_width, block_height):
    """Mean edge magnitude in the block, scaled so 1.0 means every pixel is 255"""
    edges = corner_sum(sobel_table, row * width + col, width, block_width, block_height)
    return edges / (block_width * block_height * MAX_EDGE_VALUE)


def should_skip(sobel_table, row, col, width, block_width, block_height, density):
    """
    True when the block at (row, col) has less edge density than `density`.

    Only call this with blocks that fit inside the image and with density > 0.
    """
    return block_edge_density(sobel_table, row, col, width,
                              block_width, block_height) < density
