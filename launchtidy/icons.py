"""
Dominant icon colour, for grouping apps by colour.
"""
from __future__ import annotations

import colorsys
import io
from enum import Enum
from typing import Dict, Tuple

from PIL import Image, UnidentifiedImageError

from launchtidy.store.snapshot import Snapshot

RGB = Tuple[int, int, int]
HSL = Tuple[float, float, float]


class ColorClass(str, Enum):
    GRAY = "gray"
    WHITE = "white"
    ORANGE_RED = "orange-red"
    YELLOW_GREEN = "yellow-green"
    BLUE = "blue"


def dominant_rgb(image_bytes: bytes) -> RGB:
    """
    Average colour of an icon raster (the image resampled down to one pixel).
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        pixel = img.convert("RGB").resize((1, 1), Image.Resampling.LANCZOS).getpixel((0, 0))
    r, g, b = pixel[:3]
    return int(r), int(g), int(b)


def rgb_to_hsl(rgb: RGB) -> HSL:
    """
    (h in degrees [0, 360), s and l in percent [0, 100]).
    """
    r, g, b = (c / 255.0 for c in rgb)
    h, l, s = colorsys.rgb_to_hls(r, g, b)
    return h * 360.0, s * 100.0, l * 100.0


def classify_hsl(hsl: HSL) -> ColorClass:
    h, s, l = hsl
    if s < 15:
        return ColorClass.WHITE if l > 85 else ColorClass.GRAY
    if 0 <= h < 40:
        return ColorClass.ORANGE_RED
    if 40 <= h < 180:
        return ColorClass.YELLOW_GREEN
    if 180 <= h < 300:
        return ColorClass.BLUE
    return ColorClass.ORANGE_RED


def color_class_map(snapshot: Snapshot) -> Dict[int, str]:
    """
    item_id -> colour class, from the mini icon rasters; undecodable rasters are left out.
    """
    out: Dict[int, str] = {}
    for cache in snapshot.image_caches:
        raster = cache.image_data_mini or cache.image_data
        if not raster:
            continue
        try:
            rgb = dominant_rgb(bytes(raster))
        except (UnidentifiedImageError, OSError, ValueError):
            continue
        out[cache.item_id] = classify_hsl(rgb_to_hsl(rgb)).value
    return out
