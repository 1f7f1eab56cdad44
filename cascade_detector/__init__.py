# cascade_detector/__init__.py
from .cascade import Cascade, MalformedCascadeError, decode_cascade, load_cascade
from .disjoint_set import DisjointSet
from .geometry import Rectangle, intersect_rect
from .integral_image import IntegralImages, compute_integral_image
from .merger import merge_rectangles
from .object_detector import ObjectDetector
from .viola_jones import detect, scan_windows

__all__ = ['Cascade', 'MalformedCascadeError', 'decode_cascade', 'load_cascade',
           'DisjointSet', 'Rectangle', 'intersect_rect', 'IntegralImages',
           'compute_integral_image', 'merge_rectangles', 'ObjectDetector',
           'detect', 'scan_windows']
