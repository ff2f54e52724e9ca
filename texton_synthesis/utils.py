"""
Image I/O and rendering helpers.

Exemplars are read and written as RGB uint8 arrays; label maps and texton
sets are rendered to arrays that can be saved next to a synthesis result.
"""

import os
from typing import List, Optional

import numpy as np
import matplotlib.pyplot as plt
from PIL import Image
from skimage.color import label2rgb

from .textons import FIRST_TEXTON_ID, Cluster


def load_texture(path) -> np.ndarray:
    """Reads an exemplar from disk as an (H, W, 3) RGB uint8 array.

    Palette, grayscale and alpha images are converted to RGB.

    Raises:
        ValueError: The file is missing or is not a readable image.
    """
    try:
        with Image.open(path) as image:
            return np.asarray(image.convert('RGB')).copy()
    except OSError as e:
        raise ValueError(f"Could not load texture from {path}: {e}") from e


def save_image(image: np.ndarray, path):
    """Writes an RGB or grayscale array to `path`, creating missing folders.

    Arrays that are not uint8 are clipped to [0, 255] first. The format
    follows the file extension.

    Raises:
        ValueError: The array cannot be encoded or the file cannot be written.
    """
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    folder = os.path.dirname(os.fspath(path))
    try:
        if folder:
            os.makedirs(folder, exist_ok=True)
        Image.fromarray(image).save(path)
    except (OSError, TypeError, ValueError) as e:
        raise ValueError(f"Could not save image to {path}: {e}") from e


def render_label_map(label_map: np.ndarray, image: Optional[np.ndarray] = None) -> np.ndarray:
    """Colors every texton of a label map, optionally blended over the image.

    Non-texton pixels (out of class, boundary, unassigned) stay black.
    """
    labels = np.where(label_map >= FIRST_TEXTON_ID, label_map - FIRST_TEXTON_ID + 1, 0)
    colored = label2rgb(labels, image=image, bg_label=0, alpha=0.4 if image is not None else 1.0)
    return (np.clip(colored, 0, 1) * 255).astype(np.uint8)


def render_textons(clusters: List[Cluster], padding: int = 2, max_width: int = 512) -> np.ndarray:
    """Lays out every texton side by side, one row of textons after another.

    Clusters are separated by an extra blank line.
    """
    rows = []
    for cluster in clusters:
        x = y = row_height = 0
        placements = []
        for texton in cluster.textons:
            if x > 0 and x + texton.width > max_width:
                x, y = 0, y + row_height + padding
                row_height = 0
            placements.append((x, y, texton))
            x += texton.width + padding
            row_height = max(row_height, texton.height)
        if not placements:
            continue

        width = max(px + t.width for px, _, t in placements)
        strip = np.zeros((y + row_height + padding, max(width, 1), 3), dtype=np.uint8)
        for px, py, t in placements:
            strip[py:py + t.height, px:px + t.width][t.mask] = t.patch[t.mask]
        rows.append(strip)

    if not rows:
        return np.zeros((1, 1, 3), dtype=np.uint8)

    width = max(r.shape[1] for r in rows)
    padded = [np.pad(r, ((0, padding), (0, width - r.shape[1]), (0, 0))) for r in rows]
    return np.concatenate(padded, axis=0)


def _figure_to_array(fig) -> np.ndarray:
    fig.canvas.draw()
    img = np.asarray(fig.canvas.buffer_rgba())[:, :, :3].copy()
    plt.close(fig)
    return img


def visualize_results(original_texture: np.ndarray, synthesized_texture: np.ndarray,
                      title: str = None, save_path: str = None,
                      label_map: Optional[np.ndarray] = None) -> np.ndarray:
    """Visualizes original and synthesized textures side-by-side using Matplotlib.

    Args:
        original_texture: The exemplar.
        synthesized_texture: The synthesized texture.
        title: Optional title for the entire visualization.
        save_path: Optional path to save the visualization image.
        label_map: Optional texture-class or texton label map, shown as a
                   third panel.

    Returns:
        A NumPy array representing the visualization image (RGB).
    """
    panels = [('Original Texture', original_texture), ('Synthesized Texture', synthesized_texture)]
    if label_map is not None:
        panels.insert(1, ('Labels', label2rgb(label_map, bg_label=-1)))

    fig = plt.figure(figsize=(6 * len(panels), 6))
    for i, (panel_title, panel) in enumerate(panels):
        plt.subplot(1, len(panels), i + 1)
        plt.imshow(panel)
        plt.title(panel_title)
        plt.axis('off')

    if title:
        plt.suptitle(title, fontsize=16)

    plt.tight_layout()

    if save_path:
        save_dir = os.path.dirname(save_path)
        if save_dir:
            os.makedirs(save_dir, exist_ok=True)
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return _figure_to_array(fig)
