# test_viola_jones.py
import cv2
import numpy as np
import pytest

from cascade_detector.cascade import (
    Cascade,
    MalformedCascadeError,
    Node,
    Stage,
    WeightedRect,
    decode_cascade,
)
from cascade_detector.edge_density import block_edge_density, should_skip
from cascade_detector.evaluator import passes_cascade, window_statistics
from cascade_detector.integral_image import compute_integral_image
from cascade_detector.viola_jones import detect, scan_windows

# One stage, one node over the whole 10x10 window: a uniform window brighter
# than 150 scores right_value 1, anything else scores left_value 0
BRIGHT_SQUARE = [10, 10, 0.5, 1, 0, 1, 0, 0, 10, 10, 1.0, 150, 0, 1]


def bright_square_image(size=20, square=10, background=100, foreground=200):
    image = np.full((size, size, 4), background, dtype=np.uint8)
    image[:, :, 3] = 255
    start = (size - square) // 2
    image[start:start + square, start:start + square, :3] = foreground
    return image


def textured_image(width=48, height=40, seed=0):
    rng = np.random.default_rng(seed)
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[:, :, :3] = rng.integers(0, 256, size=(height, width, 1))
    image[:, :, 3] = 255
    cv2.rectangle(image, (5, 5), (20, 20), (255, 255, 255, 255), -1)
    return image


def tables(image, width, height):
    integral = compute_integral_image(image, width, height, with_sobel=True)
    return (integral.flat('sum_table'), integral.flat('square_table'),
            integral.flat('tilted_table'), integral.flat('sobel_table'))


class ExplodingRects:
    def __iter__(self):
        raise AssertionError("later stage was evaluated")


def test_bright_square_is_found_once():
    image = bright_square_image()

    rects = detect(image, 20, 20, 0.8, 1.25, 1.0, 0.0, BRIGHT_SQUARE)

    assert len(rects) == 1
    rect = rects[0]
    assert rect.total == 1
    assert (rect.width, rect.height) == (10, 10)
    assert abs(rect.x - 5) <= 1
    assert abs(rect.y - 5) <= 1


def test_accepts_flat_rgba_buffer():
    image = bright_square_image()

    flat = detect(image.ravel(), 20, 20, 0.8, 1.25, 1.0, 0.0, BRIGHT_SQUARE)
    shaped = detect(image, 20, 20, 0.8, 1.25, 1.0, 0.0, BRIGHT_SQUARE)

    assert flat == shaped


def test_unreachable_stage_threshold_finds_nothing():
    cascade = list(BRIGHT_SQUARE)
    cascade[2] = 10.0

    assert detect(bright_square_image(), 20, 20, 0.8, 1.25, 1.0, 0.0, cascade) == []
    assert detect(textured_image(), 48, 40, 0.8, 1.25, 1.0, 0.0, cascade) == []


def test_detection_is_deterministic():
    image = textured_image()
    # Accept windows whose mean reaches twice their standard deviation
    cascade = [10, 10, 0.5, 1, 0, 1, 0, 0, 10, 10, 1.0, 2.0, 0, 1]

    first = detect(image, 48, 40, 1.0, 1.25, 1.5, 0.0, cascade)
    second = detect(image, 48, 40, 1.0, 1.25, 1.5, 0.0, cascade)

    assert set(first) == set(second)


def test_raising_edge_density_never_evaluates_more_windows():
    image = textured_image()
    cascade = [10, 10]

    evaluated = []
    for density in [0.0, 0.05, 0.1, 0.2, 0.4, 0.8]:
        _, stats = scan_windows(image, 48, 40, 1.0, 1.25, 1.5, density, cascade)
        evaluated.append(stats['evaluated'])

    assert evaluated == sorted(evaluated, reverse=True)
    assert evaluated[-1] < evaluated[0]


def test_zero_edge_density_disables_pruning():
    _, stats = scan_windows(textured_image(), 48, 40, 1.0, 1.25, 1.5, 0.0, [10, 10])
    assert stats['pruned'] == 0
    assert stats['evaluated'] > 0


def test_cancelled_scan_returns_nothing():
    rects, stats = scan_windows(bright_square_image(), 20, 20, 0.8, 1.25, 1.0, 0.0,
                                BRIGHT_SQUARE, should_stop=lambda: True)
    assert rects == []
    assert stats['cancelled']
    assert stats['scales'] == 0


def test_uncancelled_scan_matches_plain_scan():
    image = bright_square_image()
    plain = detect(image, 20, 20, 0.8, 1.25, 1.0, 0.0, BRIGHT_SQUARE)
    checked = detect(image, 20, 20, 0.8, 1.25, 1.0, 0.0, BRIGHT_SQUARE,
                     should_stop=lambda: False)
    assert plain == checked


@pytest.mark.parametrize('scale_factor, step_size, initial_scale', [
    (1.0, 1.5, 1.0),
    (0.9, 1.5, 1.0),
    (1.25, 0.0, 1.0),
    (1.25, 1.5, 0.0),
])
def test_invalid_scan_parameters(scale_factor, step_size, initial_scale):
    with pytest.raises(ValueError):
        detect(bright_square_image(), 20, 20, initial_scale, scale_factor,
               step_size, 0.0, BRIGHT_SQUARE)


def test_window_larger_than_image_finds_nothing():
    assert detect(bright_square_image(), 20, 20, 2.0, 1.25, 1.0, 0.0, BRIGHT_SQUARE) == []


def test_flat_window_falls_back_to_unit_deviation():
    image = np.full((12, 12), 50, dtype=np.int64)
    sum_table, square_table, _, _ = tables(image, 12, 12)

    mean, std = window_statistics(sum_table, square_table, 0, 0, 12, 4, 4)

    assert mean == pytest.approx(50)
    assert std == 1.0


def test_window_statistics_on_two_level_window():
    image = np.zeros((12, 12), dtype=np.int64)
    image[1:6, 1:3] = 10  # half of the 4x5 window anchored at (0, 0)
    image[1:6, 3:5] = 30
    sum_table, square_table, _, _ = tables(image, 12, 12)

    mean, std = window_statistics(sum_table, square_table, 0, 0, 12, 4, 5)

    assert mean == pytest.approx(20)
    assert std == pytest.approx(10)


def test_rejecting_stage_stops_evaluation():
    cascade = Cascade(10, 10, (
        Stage(5.0, (Node(False, (WeightedRect(0, 0, 10, 10, 1.0),), 0.0, 0.0, 1.0),)),
        Stage(0.0, (Node(False, ExplodingRects(), 0.0, 0.0, 1.0),)),
    ))
    image = bright_square_image()
    sum_table, square_table, tilted_table, _ = tables(image, 20, 20)

    assert not passes_cascade(cascade, sum_table, square_table, tilted_table,
                              0, 0, 20, 10, 10, 1.0)


def test_all_stages_must_pass():
    passing = Stage(0.5, (Node(False, (WeightedRect(0, 0, 10, 10, 1.0),), 0.0, 0.0, 1.0),))
    failing = Stage(0.5, (Node(False, (WeightedRect(0, 0, 10, 10, 1.0),), 0.0, 1.0, 0.0),))
    image = bright_square_image()
    sum_table, square_table, tilted_table, _ = tables(image, 20, 20)

    args = (sum_table, square_table, tilted_table, 0, 0, 20, 10, 10, 1.0)
    assert passes_cascade(Cascade(10, 10, (passing, passing)), *args)
    assert not passes_cascade(Cascade(10, 10, (passing, failing)), *args)


@pytest.mark.parametrize('node_threshold, expected', [(0.4, True), (0.3, False)])
def test_tilted_node_uses_rotated_table(node_threshold, expected):
    # Tilted 2x2 rect covers 8 pixels of value 10: 80 / 256 = 0.3125
    image = np.full((32, 32), 10, dtype=np.int64)
    sum_table, square_table, tilted_table, _ = tables(image, 32, 32)
    cascade = decode_cascade([16, 16, 0.5, 1, 1, 1, 8, 1, 2, 2, 1.0, node_threshold, 1, 0])

    assert passes_cascade(cascade, sum_table, square_table, tilted_table,
                          0, 0, 32, 16, 16, 1.0) is expected


def test_feature_rects_scale_with_the_window():
    image = bright_square_image(size=40, square=20)
    sum_table, square_table, tilted_table, _ = tables(image, 40, 40)
    cascade = decode_cascade(BRIGHT_SQUARE)

    assert passes_cascade(cascade, sum_table, square_table, tilted_table,
                          9, 9, 40, 20, 20, 2.0)
    assert not passes_cascade(cascade, sum_table, square_table, tilted_table,
                              4, 4, 40, 20, 20, 2.0)


def test_flat_block_is_skipped():
    image = np.full((20, 20), 90, dtype=np.int64)
    *_, sobel_table = tables(image, 20, 20)

    assert block_edge_density(sobel_table, 2, 2, 20, 10, 10) == 0
    assert should_skip(sobel_table, 2, 2, 20, 10, 10, 0.1)


def test_edgy_block_is_kept():
    image = np.zeros((20, 20), dtype=np.int64)
    # Two pixel wide vertical stripes
    image[:, 0::4] = 255
    image[:, 1::4] = 255
    *_, sobel_table = tables(image, 20, 20)

    assert block_edge_density(sobel_table, 2, 2, 20, 10, 10) > 0.5
    assert not should_skip(sobel_table, 2, 2, 20, 10, 10, 0.5)


@pytest.mark.parametrize('header', [float('nan'), float('inf')])
def test_non_finite_cascade_header_is_malformed(header):
    cascade = [header] + BRIGHT_SQUARE[1:]
    with pytest.raises(MalformedCascadeError):
        detect(bright_square_image(), 20, 20, 0.8, 1.25, 1.0, 0.0, cascade)


def test_missing_edge_density_disables_pruning():
    image = textured_image()

    _, stats = scan_windows(image, 48, 40, 1.0, 1.25, 1.5, None, [10, 10])
    assert stats['pruned'] == 0
    assert stats['evaluated'] > 0

    square = bright_square_image()
    assert (detect(square, 20, 20, 0.8, 1.25, 1.0, None, BRIGHT_SQUARE)
            == detect(square, 20, 20, 0.8, 1.25, 1.0, 0.0, BRIGHT_SQUARE))
