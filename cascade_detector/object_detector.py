# cascade_detector/object_detector.py
"""
Object detector running one or more Haar cascades over a frame
"""
import json
import os
from datetime import datetime

import cv2
import numpy as np

from .cascade import decode_cascade, load_cascade
from .geometry import Rectangle
from . import viola_jones


class ObjectDetector:
    """
    Haar cascade object detector.

    Holds its own configuration and its own registry of named classifiers.
    Cascades are immutable once registered, so one detector can be reused for
    any number of frames.
    """

    default_params = {
        # Scanner
        'initial_scale': 1.0,
        'scale_factor': 1.25,
        'step_size': 1.5,
        'edges_density': 0.2,

        # Merger
        'regions_overlap': 0.5,

        'verbose': False,
    }

    def __init__(self, config_path=None, classifiers=None, **overrides):
        """
        Initialize detector

        Args:
            config_path: Optional JSON file with parameters and a "classifiers"
                mapping of name -> cascade file
            classifiers: Optional mapping of name -> cascade (flat data, Cascade or path)
            overrides: Parameter values taking precedence over the config file
        """
        self.config = {}
        if config_path:
            if not os.path.exists(config_path):
                raise FileNotFoundError(f"Config file not found: {config_path}")
            with open(config_path, 'r') as f:
                self.config = json.load(f)

        config_classifiers = self.config.pop('classifiers', {})

        # Merge with config
        self.params = {**self.default_params, **self.config, **overrides}
        self._validate_params()

        self.classifiers = {}
        self.set_classifiers({**config_classifiers, **(classifiers or {})})

        if self.params['verbose']:
            print("=" * 60)
            print("HAAR CASCADE OBJECT DETECTOR")
            print("=" * 60)
            print(f"Scale: initial={self.params['initial_scale']}, "
                  f"factor={self.params['scale_factor']}, step={self.params['step_size']}")
            print(f"Edges density: {self.params['edges_density']}, "
                  f"regions overlap: {self.params['regions_overlap']}")
            print(f"Classifiers: {', '.join(self.classifiers) or 'none'}")
            print("=" * 60)

    def _validate_params(self):
        params = self.params
        unknown = set(params) - set(self.default_params)
        if unknown:
            raise ValueError(f"Unknown detector parameters: {sorted(unknown)}")
        if params['initial_scale'] <= 0:
            raise ValueError("initial_scale must be positive")
        if params['scale_factor'] <= 1:
            raise ValueError("scale_factor must be greater than 1")
        if params['step_size'] <= 0:
            raise ValueError("step_size must be positive")
        if params['edges_density'] is None:
            params['edges_density'] = 0.0
        if not 0 <= params['edges_density'] <= 1:
            raise ValueError("edges_density must be in [0, 1]")
        if not 0 < params['regions_overlap'] <= 1:
            raise ValueError("regions_overlap must be in (0, 1]")

    def add_classifier(self, name, cascade):
        """Register a classifier under name; cascade may be flat data, a Cascade or a file path"""
        if isinstance(cascade, (str, os.PathLike)):
            cascade = load_cascade(cascade)
        self.classifiers[name] = decode_cascade(cascade)

    def set_classifiers(self, classifiers):
        """Replace all registered classifiers"""
        self.classifiers = {}
        for name, cascade in classifiers.items():
            self.add_classifier(name, cascade)

    def get_classifiers(self):
        return dict(self.classifiers)

    def get_classifier(self, name):
        if name not in self.classifiers:
            raise KeyError(f"Classifier '{name}' is not registered")
        return self.classifiers[name]

    def detect(self, pixels, width, height, classifier, should_stop=None):
        """Run one registered classifier over RGBA pixels"""
        cascade = self.get_classifier(classifier)
        rects = viola_jones.detect(
            pixels,
            width,
            height,
            self.params['initial_scale'],
            self.params['scale_factor'],
            self.params['step_size'],
            self.params['edges_density'],
            cascade,
            regions_overlap=self.params['regions_overlap'],
            should_stop=should_stop,
            verbose=self.params['verbose'],
        )
        return [Rectangle(r.x, r.y, r.width, r.height, r.total, label=classifier)
                for r in rects]

    def track(self, pixels, width, height, should_stop=None):
        """
        Run every registered classifier over one frame.

        Returns:
            Concatenated Rectangles, each labelled with its classifier name
        """
        if not self.classifiers:
            raise ValueError("No classifiers registered, call add_classifier() first")

        results = []
        for name in self.classifiers:
            if self.params['verbose']:
                print(f"Running classifier '{name}'...")
            results.extend(self.detect(pixels, width, height, name, should_stop=should_stop))
        return results

    def detect_image(self, image, should_stop=None):
        """Track on a BGR image as loaded by cv2.imread"""
        if image is None:
            raise ValueError("Image is None")

        if image.ndim == 2:
            rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
        elif image.shape[2] == 4:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        else:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)

        height, width = rgba.shape[:2]
        if self.params['verbose']:
            print(f"\nProcessing image: {width}x{height}")
        return self.track(rgba, width, height, should_stop=should_stop)

    def visualize_results(self, image, rects, save_path=None):
        """
        Draw detections on a copy of a BGR image

        Args:
            image: BGR image
            rects: Rectangles from detect_image()
            save_path: Path to save visualization
        """
        vis = image.copy()
        if vis.ndim == 2:
            vis = cv2.cvtColor(vis, cv2.COLOR_GRAY2BGR)

        colors = [(0, 255, 0), (255, 255, 0), (0, 165, 255), (255, 0, 255), (0, 0, 255)]
        names = list(self.classifiers)

        for rect in rects:
            index = names.index(rect.label) if rect.label in names else 0
            color = colors[index % len(colors)]
            x1, y1, x2, y2 = rect.as_window()

            cv2.rectangle(vis, (x1, y1), (x2, y2), color, 2)

            label = f"{rect.label or 'object'} ({rect.total})"
            cv2.putText(vis, label, (x1, max(10, y1 - 5)),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1)

        cv2.putText(vis, f"Detections: {len(rects)}", (10, 20),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)

        if save_path:
            cv2.imwrite(save_path, vis)
            if self.params['verbose']:
                print(f"✓ Saved visualization to: {save_path}")

        return vis

    def save_results(self, image_name, rects, output_dir):
        """
        Save detections to a text file
        """
        result_file = os.path.join(output_dir, f"{image_name}_results.txt")

        with open(result_file, 'w') as f:
            f.write(f"Haar Cascade Detection Results for: {image_name}\n")
            f.write(f"Date: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            f.write(f"Classifiers: {', '.join(self.classifiers)}\n")
            f.write(f"Number of detections: {len(rects)}\n")
            f.write("-" * 50 + "\n\n")

            for i, rect in enumerate(rects):
                x1, y1, x2, y2 = rect.as_window()
                f.write(f"Detection {i+1}:\n")
                f.write(f"  Classifier:  {rect.label}\n")
                f.write(f"  Coordinates: [{x1}, {y1}, {x2}, {y2}]\n")
                f.write(f"  Dimensions:  {rect.width} x {rect.height}\n")
                f.write(f"  Raw windows: {rect.total}\n")
                f.write("-" * 30 + "\n")

        if self.params['verbose']:
            print(f"✓ Saved results to: {result_file}")

        return result_file


def detections_summary(rects):
    """Count detections per classifier and average window count"""
    summary = {}
    for rect in rects:
        entry = summary.setdefault(rect.label, {'count': 0, 'raw_windows': []})
        entry['count'] += 1
        entry['raw_windows'].append(rect.total)

    for entry in summary.values():
        entry['mean_raw_windows'] = float(np.mean(entry.pop('raw_windows')))
    return summary
