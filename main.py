"""
Main script for texton-based texture synthesis.
Usage: python main.py --input texture.jpg --output result.png
"""

import argparse
import logging
import time
import os
from texton_synthesis import (
    CoOccurrenceConfig,
    ExtractionConfig,
    PipelineConfig,
    SynthesisConfig,
    SynthesisError,
    TextonPipeline,
    load_texture,
    save_image,
    visualize_results,
)
from texton_synthesis.utils import render_label_map, render_textons


def add_pipeline_arguments(parser: argparse.ArgumentParser):
    """Arguments shared by the single-image and batch scripts."""
    parser.add_argument('--clusters', type=int, default=3, help='Number of texture classes')
    parser.add_argument('--min-texton-size', type=int, default=30, help='Minimal texton size in pixels')
    parser.add_argument('--background-x', type=int, default=None, help='X of a background pixel')
    parser.add_argument('--background-y', type=int, default=None, help='Y of a background pixel')
    parser.add_argument('--canny-low', type=float, default=70, help='Low Canny threshold')
    parser.add_argument('--canny-high', type=float, default=90, help='High Canny threshold')
    parser.add_argument('--max-dilations', type=int, default=20, help='Maximal dilation steps')
    parser.add_argument('--extra-dilations', type=int, default=2,
                        help='Dilation steps after the first neighbor was found')
    parser.add_argument('--border', type=int, default=50, help='Synthesis border')
    parser.add_argument('--max-overlap', type=int, default=10, help='Tolerated overlapping pixels')
    parser.add_argument('--dilation-error', type=float, default=2.0,
                        help='Mean dilation area above which too-close textons are removed')
    parser.add_argument('--spacing-tolerance', type=int, default=0,
                        help='Pixels taken off the dilation area around placed textons')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')


def build_config(args) -> PipelineConfig:
    background = None
    if args.background_x is not None and args.background_y is not None:
        background = (args.background_x, args.background_y)

    return PipelineConfig(
        extraction=ExtractionConfig(n_clusters=args.clusters,
                                    min_texton_size=args.min_texton_size,
                                    background_pixel=background,
                                    canny_low=args.canny_low,
                                    canny_high=args.canny_high),
        cooccurrence=CoOccurrenceConfig(max_dilations=args.max_dilations,
                                        extra_dilations=args.extra_dilations),
        synthesis=SynthesisConfig(border=args.border,
                                  max_overlap=args.max_overlap,
                                  dilation_error_threshold=args.dilation_error,
                                  spacing_tolerance=args.spacing_tolerance),
        seed=args.seed)


def main():
    parser = argparse.ArgumentParser(description='Texton-Based Texture Synthesis')
    parser.add_argument('--input', type=str, required=True, help='Input texture image path')
    parser.add_argument('--output', type=str, default='output.png', help='Output image path')
    parser.add_argument('--output-width', type=int, default=None, help='Output width')
    parser.add_argument('--output-height', type=int, default=None, help='Output height')
    parser.add_argument('--visualize', action='store_true',
                        help='Also save label map, textons and a side-by-side figure')
    add_pipeline_arguments(parser)

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    print(f"Loading texture from: {args.input}")
    try:
        input_texture = load_texture(args.input)
    except ValueError as e:
        print(f"Error loading texture: {e}")
        return 1

    print(f"Input texture shape: {input_texture.shape}")

    # Default to 2x input size if not specified
    output_width = args.output_width if args.output_width is not None else input_texture.shape[1] * 2
    output_height = args.output_height if args.output_height is not None else input_texture.shape[0] * 2
    print(f"Output size: {output_width}x{output_height}")

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Invalid parameters: {e}")
        return 1

    print(f"Algorithm parameters:")
    print(f"  Clusters: {config.extraction.n_clusters}")
    print(f"  Minimal texton size: {config.extraction.min_texton_size}")
    print(f"  Border: {config.synthesis.border}")
    print(f"  Maximal overlap: {config.synthesis.max_overlap}")

    print("\nStarting texture synthesis...")
    start_time = time.time()

    try:
        pipeline = TextonPipeline(config)
        result = pipeline.run(input_texture, output_width, output_height)
    except SynthesisError as e:
        print(f"Error during synthesis: {e}")
        return 1

    synthesis_time = time.time() - start_time
    print(f"Synthesis completed in {synthesis_time:.2f} seconds")

    try:
        save_image(result.image, args.output)
    except ValueError as e:
        print(f"Error saving result: {e}")
        return 1
    print(f"Saved result to: {args.output}")

    if args.visualize:
        name, _ = os.path.splitext(args.output)
        save_image(render_label_map(result.extraction.texton_map, input_texture), f"{name}_textons_map.png")
        save_image(render_textons(result.extraction.clusters), f"{name}_textons.png")
        visualize_results(input_texture, result.image,
                          f"Texton Synthesis Results\nClusters: {config.extraction.n_clusters}",
                          save_path=f"{name}_comparison.png",
                          label_map=result.class_labels)
        print(f"Saved visualizations next to: {args.output}")

    return 0

if __name__ == "__main__":
    import sys
    sys.exit(main())
