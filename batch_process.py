import argparse
import logging
import os
import time
from texton_synthesis import SynthesisError, TextonPipeline, load_texture, save_image
from texton_synthesis.evaluation import evaluate_texture_quality

from main import add_pipeline_arguments, build_config


def main():
    parser = argparse.ArgumentParser(description='Batch process images for texton-based texture synthesis.')
    parser.add_argument('--data_dir', type=str, default='data',
                        help='Directory containing input texture images.')
    parser.add_argument('--results_dir', type=str, default='results_batch',
                        help='Directory to save synthesized textures.')
    parser.add_argument('--output_width', type=int, default=512,
                        help='Width of the output synthesized texture.')
    parser.add_argument('--output_height', type=int, default=512,
                        help='Height of the output synthesized texture.')
    parser.add_argument('--evaluate', action='store_true',
                        help='Print quality metrics of every result.')
    add_pipeline_arguments(parser)

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if not os.path.isdir(args.data_dir):
        print(f"Error: Data directory '{args.data_dir}' not found.")
        return 1

    os.makedirs(args.results_dir, exist_ok=True)
    print(f"Results will be saved in '{args.results_dir}'")

    supported_extensions = ('.png', '.jpg', '.jpeg', '.bmp', '.tiff', '.gif')
    image_files = sorted(os.path.join(args.data_dir, item) for item in os.listdir(args.data_dir)
                         if item.lower().endswith(supported_extensions))

    if not image_files:
        print(f"No images found in '{args.data_dir}'.")
        return 1

    print(f"Found {len(image_files)} images to process.")

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Invalid parameters: {e}")
        return 1

    total_start_time = time.time()
    failures = 0

    for i, img_path in enumerate(image_files):
        print(f"\nProcessing image {i+1}/{len(image_files)}: {img_path}")
        try:
            input_texture = load_texture(img_path)
            print(f"  Loaded input texture: {img_path} (Shape: {input_texture.shape})")
        except ValueError as e:
            print(f"  Error loading texture {img_path}: {e}")
            failures += 1
            continue

        start_time = time.time()
        try:
            # Synthesis filters the clusters in place
            result = TextonPipeline(config).run(input_texture, args.output_width, args.output_height)
        except SynthesisError as e:
            print(f"  Error during synthesis for {img_path}: {e}")
            failures += 1
            continue

        print(f"  Synthesis completed in {time.time() - start_time:.2f} seconds.")

        name, ext = os.path.splitext(os.path.basename(img_path))
        output_filename = f"{name}_textons_w{args.output_width}_h{args.output_height}_k{args.clusters}{ext or '.png'}"
        output_path = os.path.join(args.results_dir, output_filename)
        save_image(result.image, output_path)
        print(f"  Saved synthesized texture to: {output_path}")

        if args.evaluate:
            evaluate_texture_quality(input_texture, result.image)

    total_time = time.time() - total_start_time
    print(f"\nBatch processing completed in {total_time:.2f} seconds ({failures} failures).")
    return 0 if failures == 0 else 1


if __name__ == '__main__':
    import sys
    sys.exit(main())
