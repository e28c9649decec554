"""
Category name tables.

The table is a closed set known at build time and index-aligned with the
classifier's output vector.
"""

from pathlib import Path
from typing import Tuple

CIFAR10_CATEGORIES: Tuple[str, ...] = (
    "airplane", "automobile", "bird", "cat", "deer",
    "dog", "frog", "horse", "ship", "truck",
)


def load_category_names(path: str) -> Tuple[str, ...]:
    """
    Load an ordered category table from a text file.

    One label per line, blank lines ignored (the CIFAR ``batches.meta.txt``
    layout).

    Args:
        path: Path to the label file

    Returns:
        Tuple of category names in file order
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Category file not found: {path}")

    names = tuple(line.strip() for line in path.read_text().splitlines() if line.strip())
    if not names:
        raise ValueError(f"Category file is empty: {path}")
    return names
