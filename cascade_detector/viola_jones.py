# cascade_detector/viola_jones.py
"""
Viola-Jones multiscale sliding window detection.

The cascade's base window is grown by scale_factor on every pass. At each
scale the window slides over the image with a stride proportional to the
scale, low texture windows are pruned on edge density, the rest run through
the cascade, and accepted windows are merged into final detections.
"""
from .cascade import decode_cascade
from .edge_density import should_skip
from .evaluator import passes_cascade
from .geometry import Rectangle
from .integral_image import compute_integral_image
from .merger import REGIONS_OVERLAP, merge_rectangles


def scan_windows(pixels, width, height, initial_scale, scale_factor, step_size,
                 edges_density, cascade, should_stop=None, verbose=False):
    """
    Collect the raw windows accepted by the cascade, without merging.

    Args:
        pixels: RGBA pixels (flat buffer or array, see to_grayscale)
        width, height: Frame size
        initial_scale: Starting scale; the first pass uses initial_scale * scale_factor
        scale_factor: Growth of the window between passes (> 1)
        step_size: Stride in base-window pixels, multiplied by the scale
        edges_density: Minimum edge density in [0, 1]; 0 or None disables pruning
        cascade: Cascade or its flat numeric form
        should_stop: Optional callable checked before every scale pass
        verbose: Print progress

    Returns:
        (rects, stats) with stats counting scales, evaluated and pruned windows
    """
    if scale_factor <= 1:
        raise ValueError(f"scale_factor must be greater than 1, got {scale_factor}")
    if step_size <= 0:
        raise ValueError(f"step_size must be positive, got {step_size}")
    if initial_scale <= 0:
        raise ValueError(f"initial_scale must be positive, got {initial_scale}")

    cascade = decode_cascade(cascade)

    prune = edges_density is not None and edges_density > 0
    integral = compute_integral_image(pixels, width, height, with_sobel=prune)
    sum_table = integral.flat('sum_table')
    square_table = integral.flat('square_table')
    tilted_table = integral.flat('tilted_table')
    sobel_table = integral.flat('sobel_table') if prune else None

    stats = {'scales': 0, 'evaluated': 0, 'pruned': 0, 'cancelled': False}
    rects = []

    scale = initial_scale * scale_factor
    block_width = int(scale * cascade.min_width)
    block_height = int(scale * cascade.min_height)

    while block_width < width and block_height < height:
        if should_stop is not None and should_stop():
            stats['cancelled'] = True
            break

        if block_width <= 0 or block_height <= 0:
            # Window still rounds down to nothing at this scale
            scale *= scale_factor
            block_width = int(scale * cascade.min_width)
            block_height = int(scale * cascade.min_height)
            continue

        step = max(1, int(scale * step_size + 0.5))
        for row in range(0, height - block_height, step):
            for col in range(0, width - block_width, step):
                if sobel_table is not None and should_skip(
                        sobel_table, row, col, width, block_width, block_height, edges_density):
                    stats['pruned'] += 1
                    continue

                stats['evaluated'] += 1
                if passes_cascade(cascade, sum_table, square_table, tilted_table,
                                  row, col, width, block_width, block_height, scale):
                    rects.append(Rectangle(col, row, block_width, block_height, total=0))

        stats['scales'] += 1
        scale *= scale_factor
        block_width = int(scale * cascade.min_width)
        block_height = int(scale * cascade.min_height)

    if verbose:
        print(f"  Scanned {stats['scales']} scales on {width}x{height}: "
              f"{stats['evaluated']} windows evaluated, {stats['pruned']} pruned, "
              f"{len(rects)} accepted")

    return rects, stats


def detect(pixels, width, height, initial_scale, scale_factor, step_size,
           edges_density, cascade, regions_overlap=REGIONS_OVERLAP,
           should_stop=None, verbose=False):
    """
    Detect objects with a Haar cascade.

    Returns:
        List of merged Rectangles (total = raw windows per detection).
        An empty list means nothing was found.
    """
    rects, _ = scan_windows(pixels, width, height, initial_scale, scale_factor,
                            step_size, edges_density, cascade,
                            should_stop=should_stop, verbose=verbose)
    merged = merge_rectangles(rects, regions_overlap)

    if verbose:
        print(f"  Merged {len(rects)} raw windows into {len(merged)} detections")

    return merged
