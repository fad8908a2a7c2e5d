"""Deterministic SVG placeholder used when real image generation is unavailable."""

from __future__ import annotations

from urllib.parse import quote
from xml.sax.saxutils import escape

CANVAS_WIDTH = 1024
CANVAS_HEIGHT = 768
SKYLINE_BASE = 620
CAPTION_MAX_CHARS = 96
PLACEHOLDER_TITLE = "Альтернативный мир"

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}
# Characters left unescaped by JavaScript's encodeURIComponent.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def hash_text(text: str) -> int:
    # Hashes UTF-16 code units, so astral characters count as surrogate pairs.
    encoded = text.encode("utf-16-le", "surrogatepass")
    value = 0
    for index in range(0, len(encoded), 2):
        unit = int.from_bytes(encoded[index : index + 2], "little")
        value = (value * 31 + unit) & 0xFFFFFFFF
    return value


def escape_xml(value: object) -> str:
    return escape(str(value or ""), _XML_ENTITIES)


def create_skyline_path(seed: int) -> str:
    x = 0
    parts = [f"M0 {SKYLINE_BASE} "]
    while x < CANVAS_WIDTH:
        width = 26 + (seed + x * 13) % 48
        height = 100 + (seed + x * 19) % 230
        right = min(CANVAS_WIDTH, x + width)
        top = SKYLINE_BASE - height
        parts.append(f"L{x} {SKYLINE_BASE} L{x} {top} L{right} {top} L{right} {SKYLINE_BASE} ")
        x += width + 6
    parts.append(f"L{CANVAS_WIDTH} {CANVAS_HEIGHT} L0 {CANVAS_HEIGHT} Z")
    return "".join(parts)


def build_fallback_svg(prompt: str) -> str:
    seed = hash_text(prompt)
    top_color = f"hsl({seed % 360} 62% 72%)"
    bottom_color = f"hsl({(seed + 50) % 360} 48% 40%)"
    sun_color = f"hsl({(seed + 190) % 360} 78% 76%)"
    skyline = create_skyline_path(seed)
    caption = escape_xml(prompt[:CAPTION_MAX_CHARS])

    return f"""
<svg xmlns="http://www.w3.org/2000/svg" width="{CANVAS_WIDTH}" height="{CANVAS_HEIGHT}" viewBox="0 0 {CANVAS_WIDTH} {CANVAS_HEIGHT}">
  <defs>
    <linearGradient id="bg" x1="0" y1="0" x2="0" y2="1">
      <stop offset="0%" stop-color="{top_color}"/>
      <stop offset="100%" stop-color="{bottom_color}"/>
    </linearGradient>
    <linearGradient id="ground" x1="0" y1="0" x2="1" y2="0">
      <stop offset="0%" stop-color="rgba(25,20,18,0.78)"/>
      <stop offset="100%" stop-color="rgba(12,10,9,0.88)"/>
    </linearGradient>
  </defs>
  <rect width="{CANVAS_WIDTH}" height="{CANVAS_HEIGHT}" fill="url(#bg)"/>
  <circle cx="{170 + seed % 640}" cy="{120 + seed % 130}" r="84" fill="{sun_color}" opacity="0.58"/>
  <path d="{skyline}" fill="url(#ground)"/>
  <rect x="0" y="646" width="{CANVAS_WIDTH}" height="122" fill="rgba(8,8,8,0.42)"/>
  <text x="44" y="704" font-family="Trebuchet MS, Segoe UI, sans-serif" font-size="28" fill="rgba(255,255,255,0.87)">
    {PLACEHOLDER_TITLE}
  </text>
  <text x="44" y="738" font-family="Trebuchet MS, Segoe UI, sans-serif" font-size="20" fill="rgba(255,255,255,0.78)">
    {caption}
  </text>
</svg>""".strip()


def build_fallback_svg_data_uri(prompt: str) -> str:
    svg = build_fallback_svg(prompt)
    return f"data:image/svg+xml;charset=utf-8,{quote(svg, safe=_URI_COMPONENT_SAFE)}"
