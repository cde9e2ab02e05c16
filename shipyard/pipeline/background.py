"""Installer window background art.

The background is drawn as SVG sized to the styled image's window layout
and rasterised to ``paths.background`` with the first converter found:
ImageMagick ``convert``, then ``rsvg-convert``, then the system
``qlmanage``. Without any converter the SVG is kept for manual conversion.
"""

from __future__ import annotations

import os
from html import escape
from pathlib import Path
from string import Template

from shipyard.core.result import Err, Ok, Result
from shipyard.platform.files import atomic_write_text

from .base import BaseStage
from .errors import PackagingFailed
from .packaging import WindowLayout

__all__ = ["BackgroundGenerator", "BACKGROUND_SVG", "CONVERTERS", "converter_command"]

CONVERTERS = ("convert", "rsvg-convert", "qlmanage")

BACKGROUND_SVG = Template(
    """<svg xmlns="http://www.w3.org/2000/svg" width="$width" height="$height" viewBox="0 0 $width $height">
  <defs>
    <linearGradient id="bgGradient" x1="0%" y1="0%" x2="100%" y2="100%">
      <stop offset="0%" style="stop-color:#1a1512;stop-opacity:1" />
      <stop offset="50%" style="stop-color:#0f0d0b;stop-opacity:1" />
      <stop offset="100%" style="stop-color:#1a1512;stop-opacity:1" />
    </linearGradient>
    <radialGradient id="appGlow" cx="27%" cy="50%" r="35%">
      <stop offset="0%" style="stop-color:#d4a855;stop-opacity:0.08" />
      <stop offset="100%" style="stop-color:#d4a855;stop-opacity:0" />
    </radialGradient>
  </defs>

  <rect width="$width" height="$height" fill="url(#bgGradient)"/>
  <rect width="$width" height="$height" fill="url(#appGlow)"/>
  <rect x="0" y="0" width="$width" height="1" fill="#d4a855" opacity="0.3"/>

  <g transform="translate($arrow_x, $arrow_y)" opacity="0.4">
    <line x1="0" y1="0" x2="$arrow_len" y2="0" stroke="#d4a855" stroke-width="2" stroke-linecap="round" stroke-dasharray="8,4"/>
    <polygon points="$arrow_len,0 $arrow_head,-8 $arrow_head,8" fill="#d4a855"/>
  </g>

  <text x="$center" y="$hint_y" text-anchor="middle" font-family="-apple-system, BlinkMacSystemFont, 'Helvetica Neue'" font-size="14" fill="#d4a855" opacity="0.6">
    Drag to Applications to install
  </text>
  <text x="$center" y="$brand_y" text-anchor="middle" font-family="Georgia, serif" font-size="16" fill="#d4a855" opacity="0.4" letter-spacing="3">
    $brand
  </text>

  <path d="M 0,0 L 40,0 L 0,40 Z" fill="#d4a855" opacity="0.05"/>
  <path d="M $width,$height L $corner_x,$height L $width,$corner_y Z" fill="#d4a855" opacity="0.05"/>
</svg>
"""
)


def converter_command(
    tool: str, executable: str, svg: Path, png: Path, layout: WindowLayout
) -> tuple[list[str], Path]:
    """Return ``(command, produced_file)`` for one of ``CONVERTERS``."""
    size = f"{layout.width}x{layout.height}"
    match tool:
        case "convert":
            cmd = [executable, "-background", "none", "-density", "144", str(svg), "-resize", size, str(png)]
            return cmd, png
        case "rsvg-convert":
            cmd = [executable, "-w", str(layout.width), "-h", str(layout.height), str(svg), "-o", str(png)]
            return cmd, png
        case "qlmanage":
            # qlmanage names its thumbnail after the source file.
            cmd = [executable, "-t", "-s", str(layout.width), "-o", str(png.parent), str(svg)]
            return cmd, png.parent / f"{svg.name}.png"
        case _:
            raise ValueError(f"unknown converter: {tool}")


class BackgroundGenerator(BaseStage):
    layout = WindowLayout()

    @property
    def target(self) -> Path:
        return self._config.paths.background

    @property
    def svg_path(self) -> Path:
        return self.target.with_suffix(".svg")

    def render(self) -> str:
        lay = self.layout
        arrow_len = lay.drop_x - lay.app_x - 200
        return BACKGROUND_SVG.substitute(
            width=lay.width,
            height=lay.height,
            arrow_x=lay.app_x + 100,
            arrow_y=lay.app_y + 5,
            arrow_len=arrow_len,
            arrow_head=arrow_len - 12,
            center=lay.width // 2,
            hint_y=lay.app_y + 120,
            brand_y=lay.height - 25,
            brand=escape(self._config.app.name.upper()),
            corner_x=lay.width - 40,
            corner_y=lay.height - 40,
        )

    def find_converter(self) -> tuple[str, str] | None:
        for tool in CONVERTERS:
            executable = self._which(tool)
            if executable:
                return tool, executable
        return None

    def generate(self, *, force: bool = False, dry_run: bool = False) -> Result[Path, PackagingFailed]:
        """Write the background image, returning the file produced.

        An existing image is kept unless ``force`` is set. When no converter
        is installed the SVG source is returned instead, with a warning.
        """
        target = self.target
        if target.exists() and not force:
            self._warn(f"background already exists, left untouched: {target} (use --force)")
            return Ok(target)

        converter = self.find_converter()
        if dry_run:
            self._would(f"write {self.svg_path.name}")
            if converter is None:
                self._would(f"keep {self.svg_path} (no SVG converter installed)")
            else:
                self._would(f"convert it to {target} using {converter[0]}")
            return Ok(target)

        svg = self.svg_path
        try:
            atomic_write_text(svg, self.render())
        except OSError as e:
            return Err(PackagingFailed(path=svg, returncode=-1, reason=str(e)))

        if converter is None:
            self._warn(
                f"no SVG converter found (install ImageMagick or librsvg); kept {svg} for manual conversion"
            )
            return Ok(svg)

        tool, executable = converter
        cmd, produced = converter_command(tool, executable, svg, target, self.layout)
        self._echo(cmd)
        result = self._run(cmd, cwd=target.parent)
        if isinstance(result, Err):
            return Err(
                PackagingFailed(path=target, returncode=result.error.returncode, reason=result.error.tail(10))
            )

        try:
            if produced != target and produced.is_file():
                os.replace(produced, target)
        except OSError as e:
            return Err(PackagingFailed(path=target, returncode=0, reason=str(e)))

        if not target.is_file():
            return Err(PackagingFailed(path=target, returncode=0, reason=f"{tool} produced no image"))

        svg.unlink(missing_ok=True)
        self._console.success(f"background created with {tool}: {target}")
        return Ok(target)
