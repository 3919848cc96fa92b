"""Default palette for milestones and labels"""
import random
from typing import Iterable, List, Optional

DEFAULT_COLORS: List[str] = [
    # Warm alerts
    "#E06C5E",
    "#D95C4A",
    "#C74E3D",
    # Greens
    "#5CA271",
    "#6BB38A",
    "#5DAA90",
    # Blues
    "#4E8FD9",
    "#5A9AE6",
    "#3D88B0",
    # Purples
    "#8D74C9",
    "#A066A0",
    "#B584AD",
    # Neutrals
    "#D9AE67",
    "#C0B18D",
    "#B0A79D",
    "#9196A1",
]


def pick_color(used: Iterable[Optional[str]] = (), rng: Optional[random.Random] = None) -> str:
    """Pick a palette color not in ``used``; any palette color once all are taken."""
    taken = {color.upper() for color in used if color}
    available = [color for color in DEFAULT_COLORS if color.upper() not in taken]
    chooser = rng or random
    return chooser.choice(available or DEFAULT_COLORS)
