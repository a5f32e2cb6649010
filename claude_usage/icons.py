"""
Tray icon rendering.

Three styles, all 64x64 RGBA:

- ``bars``: "C" (or the 5h percentage once above 50%) with two thin
  progress bars for the 5-hour and weekly windows
- ``percentage``: the 5h percentage on a dark plate, colored by level
- ``dot``: a filled circle colored by level
"""
from __future__ import annotations

import functools
import os

from PIL import Image, ImageDraw, ImageFont

from .models import clamp_pct

S = 64
FG = (255, 255, 255, 255)
FG_HALF = (255, 255, 255, 80)
FG_DIM = (255, 255, 255, 140)
PLATE = (35, 35, 35, 220)
LEVEL_HIGH = (255, 87, 34, 255)
LEVEL_MID = (255, 193, 7, 255)
LEVEL_LOW = (76, 175, 80, 255)
TRANSPARENT = (0, 0, 0, 0)


@functools.lru_cache(maxsize=None)
def load_font(size: int, symbol: bool = False) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load a bold font at given size. Use symbol=True for Unicode glyphs not in Arial."""
    windir = os.environ.get('WINDIR', 'C:\\Windows')
    if symbol:
        names = (f'{windir}\\Fonts\\seguisym.ttf', 'seguisym.ttf', 'DejaVuSans.ttf')
    else:
        names = (f'{windir}\\Fonts\\arialbd.ttf', 'arialbd.ttf', 'DejaVuSans-Bold.ttf', 'Arial Bold.ttf')
    for name in names:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue

    return ImageFont.load_default()


def level_color(pct: int) -> tuple[int, int, int, int]:
    if pct > 75:
        return LEVEL_HIGH
    if pct > 50:
        return LEVEL_MID
    return LEVEL_LOW


def _centered_text(draw: ImageDraw.ImageDraw, text: str, font, fill, y: float | None = None, stroke_width: int = 0) -> None:
    bbox = draw.textbbox((0, 0), text, font=font, stroke_width=stroke_width)
    tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
    top = (S - th) / 2 - bbox[1] if y is None else y - bbox[1]
    draw.text(((S - tw) / 2 - bbox[0], top), text, fill=fill, font=font, stroke_width=stroke_width, stroke_fill=fill)


def _bars_icon(draw: ImageDraw.ImageDraw, pct_5h: int, pct_7d: int) -> None:
    if pct_5h >= 100:
        font = load_font(36, symbol=True)
        # Bitmap fallback font only covers Latin-1
        glyph = '\u2715' if isinstance(font, ImageFont.FreeTypeFont) else 'X'
        _centered_text(draw, glyph, font, FG, y=0, stroke_width=2)
    elif pct_5h > 50:
        _centered_text(draw, f'{pct_5h}', load_font(40), FG, y=0)
    else:
        _centered_text(draw, 'C', load_font(42), FG, y=0)

    # Progress bars, full width, flush to bottom
    bar_h = 9
    gap = 3
    bar2_y = S - bar_h
    bar1_y = bar2_y - gap - bar_h
    for y, pct in ((bar1_y, pct_5h), (bar2_y, pct_7d)):
        draw.rectangle([0, y, S - 1, y + bar_h - 1], fill=FG_HALF)
        fill_w = S * pct // 100
        if fill_w > 0:
            draw.rectangle([0, y, fill_w - 1, y + bar_h - 1], fill=FG)


def create_icon_image(pct_5h: int, pct_7d: int = 0, style: str = 'bars') -> Image.Image:
    """Create the tray icon for the given usage percentages."""
    pct_5h, pct_7d = clamp_pct(pct_5h), clamp_pct(pct_7d)
    img = Image.new('RGBA', (S, S), TRANSPARENT)
    draw = ImageDraw.Draw(img)

    if style == 'percentage':
        draw.rounded_rectangle([0, 12, S - 1, S - 13], radius=6, fill=PLATE)
        _centered_text(draw, f'{pct_5h}%', load_font(26), level_color(pct_5h))
    elif style == 'dot':
        draw.ellipse([4, 4, S - 5, S - 5], fill=level_color(pct_5h))
    else:
        _bars_icon(draw, pct_5h, pct_7d)

    return img


def create_status_image(text: str) -> Image.Image:
    """Create centered-text icon for error/status states."""
    img = Image.new('RGBA', (S, S), TRANSPARENT)
    draw = ImageDraw.Draw(img)
    _centered_text(draw, text, load_font(46), FG_DIM)

    return img
