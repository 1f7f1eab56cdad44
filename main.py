# main.py
"""
MAIN EXECUTION SCRIPT FOR HAAR CASCADE DETECTION
Usage: python main.py --input <folder> --output <folder> --cascade face=cascades/face.json
"""
import argparse
import json
import os
import sys
import traceback
from pathlib import Path

import cv2
from tqdm import tqdm

from cascade_detector import ObjectDetector
from cascade_detector.object_detector import detections_summary

IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.bmp', '.tiff']


def parse_cascade_args(values):
    """Turn ["face=path.json", "eye.json"] into {"face": "path.json", "eye": "eye.json"}"""
    classifiers = {}
    for value in values or []:
        if '=' in value:
            name, path = value.split('=', 1)
        else:
            path = value
            name = Path(value).stem
        classifiers[name] = path
    return classifiers


def find_images(folder):
    image_files = []
    for ext in IMAGE_EXTENSIONS:
        image_files.extend(Path(folder).glob(f'*{ext}'))
        image_files.extend(Path(folder).glob(f'*{ext.upper()}'))
    return sorted(set(image_files))


def resize_to_limit(image, max_dim):
    h, w = image.shape[:2]
    if max_dim <= 0 or (h <= max_dim and w <= max_dim):
        return image
    scale = max_dim / max(h, w)
    new_w, new_h = int(w * scale), int(h * scale)
    print(f"Resized from {w}x{h} to {new_w}x{new_h}")
    return cv2.resize(image, (new_w, new_h))


def build_parser():
    parser = argparse.ArgumentParser(description='Haar cascade object detector')
    parser.add_argument('--input', required=True, help='Input folder containing images')
    parser.add_argument('--output', required=True, help='Output folder for results')
    parser.add_argument('--config', default=None, help='Path to JSON config file')
    parser.add_argument('--cascade', action='append',
                        help='Cascade file as name=path (repeatable)')
    parser.add_argument('--edges-density', type=float, default=None,
                        help='Override edge density pruning threshold (0 disables)')
    parser.add_argument('--max-dim', type=int, default=640,
                        help='Downscale images larger than this (0 keeps the size)')
    parser.add_argument('--limit', type=int, default=0, help='Limit number of images to process')
    parser.add_argument('--verbose', action='store_true', help='Print detector progress')
    return parser


def main(argv=None):
    """Main execution function"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not os.path.exists(args.input):
        print(f"Error: Input folder '{args.input}' does not exist")
        return 1

    overrides = {'verbose': args.verbose}
    if args.edges_density is not None:
        overrides['edges_density'] = args.edges_density

    detector = ObjectDetector(args.config, classifiers=parse_cascade_args(args.cascade), **overrides)
    if not detector.classifiers:
        parser.error("No classifiers given, use --cascade or a config with 'classifiers'")

    os.makedirs(os.path.join(args.output, 'images'), exist_ok=True)
    os.makedirs(os.path.join(args.output, 'text'), exist_ok=True)

    image_files = find_images(args.input)
    print(f"Found {len(image_files)} images in '{args.input}'")

    if args.limit > 0:
        image_files = image_files[:args.limit]
        print(f"Limiting to {len(image_files)} images")

    all_results = {}
    processed_count = 0

    for img_path in tqdm(image_files, desc="Processing images"):
        try:
            image = cv2.imread(str(img_path))
            if image is None:
                print(f"Warning: Could not load {img_path}")
                continue

            image = resize_to_limit(image, args.max_dim)
            rects = detector.detect_image(image)

            vis_path = os.path.join(args.output, 'images', f"{img_path.stem}_result.jpg")
            detector.visualize_results(image, rects, vis_path)
            detector.save_results(img_path.stem, rects, os.path.join(args.output, 'text'))

            all_results[img_path.name] = {
                'detections': [rect.to_dict() for rect in rects],
                'summary': detections_summary(rects),
            }
            processed_count += 1

        except Exception as e:
            print(f"Error processing {img_path}: {str(e)}")
            traceback.print_exc()
            continue

    with open(os.path.join(args.output, 'detections.json'), 'w') as f:
        json.dump(all_results, f, indent=2)

    total_detections = sum(len(r['detections']) for r in all_results.values())

    print(f"\n{'='*60}")
    print("PROCESSING COMPLETE")
    print(f"{'='*60}")
    print(f"Total images processed: {processed_count}/{len(image_files)}")
    print(f"Total detections: {total_detections}")
    print(f"Input folder: {args.input}")
    print(f"Output folder: {args.output}")
    print(f"  - Visualizations: {args.output}/images/")
    print(f"  - Text results: {args.output}/text/")
    print(f"  - Summary: {args.output}/detections.json")
    print(f"{'='*60}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
