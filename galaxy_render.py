"""
galaxy_render.py
================
Matplotlib rendering collaborator for the spiral-galaxy generator.

Shows the generated point cloud as a 3-D scatter on a dark background, viewed
through a perspective camera placed like the interactive viewer's default
camera.  ``MatplotlibScene`` is the scene the generator attaches galaxies to:
one scatter artist per attached handle, removed again when the handle is
replaced.

Axis convention
---------------
The galaxy is generated with ``y`` as the vertical axis.  Matplotlib's 3-D
axes use ``z`` as vertical, so a particle ``(x, y, z)`` is drawn at
``(x, -z, y)``, which keeps the handedness (and therefore the visual spin
direction) unchanged.

Usage
-----
    # Default parameters, interactive window (drag to orbit)
    python galaxy_render.py

    # Render a saved preset to PNG
    python galaxy_render.py --params preset.json --save galaxy.png

    # Different viewing angle
    python galaxy_render.py --elev 80 --azim 0 --save top.png
"""

from __future__ import annotations

import argparse
import math
from typing import Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

from galaxygen import (
    GalaxyGenerator,
    GalaxyHandle,
    GalaxyParameters,
    Scene,
    load_parameters,
)


BG = "#000000"

# Default camera: position in galaxy coordinates and vertical field of view
CAMERA_POSITION: Tuple[float, float, float] = (2.0, 2.0, 5.0)
CAMERA_FOV = 75.0

# Scene-unit point size → scatter marker area (points²)
POINT_SCALE = 250.0


# ---------------------------------------------------------------------------
# Camera helpers
# ---------------------------------------------------------------------------

def to_plot_coords(positions: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Map galaxy (x, y, z) columns to matplotlib (X, Y, Z) with Y-up → Z-up."""
    return positions[:, 0], -positions[:, 2], positions[:, 1]


def camera_view(position: Tuple[float, float, float]) -> Tuple[float, float]:
    """Elevation and azimuth (degrees) of a camera at *position* looking at
    the origin, in matplotlib's view_init convention."""
    x, y, z = position
    px, py, pz = x, -z, y
    elev = math.degrees(math.atan2(pz, math.hypot(px, py)))
    azim = math.degrees(math.atan2(py, px))
    return elev, azim


def focal_length(fov_deg: float) -> float:
    """Matplotlib perspective focal length for a vertical field of view."""
    return 1.0 / math.tan(math.radians(fov_deg) / 2.0)


def marker_area(size: float) -> float:
    return (size * POINT_SCALE) ** 2


def frame_galaxy(ax, radius: float) -> None:
    """Fit the axes to a galaxy of *radius* with equal scaling on every axis."""
    margin = radius * 1.05
    ax.set_xlim(-margin, margin)
    ax.set_ylim(-margin, margin)
    ax.set_zlim(-margin, margin)
    ax.set_box_aspect((1, 1, 1))


def new_galaxy_axes(
    figsize: Tuple[float, float] = (9, 9),
    elev: Optional[float] = None,
    azim: Optional[float] = None,
) -> Tuple[plt.Figure, "plt.Axes"]:
    """Create a dark figure with a perspective 3-D axes ready for a galaxy."""
    fig = plt.figure(figsize=figsize)
    fig.patch.set_facecolor(BG)
    ax = fig.add_subplot(projection="3d")
    ax.set_facecolor(BG)
    ax.set_axis_off()
    fig.subplots_adjust(left=0, right=1, bottom=0, top=1)

    default_elev, default_azim = camera_view(CAMERA_POSITION)
    ax.view_init(
        elev=default_elev if elev is None else elev,
        azim=default_azim if azim is None else azim,
    )
    ax.set_proj_type("persp", focal_length=focal_length(CAMERA_FOV))
    return fig, ax


# ---------------------------------------------------------------------------
# Scene
# ---------------------------------------------------------------------------

class MatplotlibScene(Scene):
    """Scene backed by a matplotlib 3-D axes."""

    def __init__(self, ax) -> None:
        super().__init__()
        self.ax = ax

    def _create_visual(self, handle: GalaxyHandle):
        x, y, z = to_plot_coords(handle.positions)
        artist = self.ax.scatter(
            x, y, z,
            c=handle.colors,
            s=marker_area(handle.params.size),
            linewidths=0,
            alpha=0.8,
            depthshade=False,
        )
        frame_galaxy(self.ax, handle.params.radius)
        self.ax.figure.canvas.draw_idle()
        return artist

    def _remove_visual(self, handle: GalaxyHandle) -> None:
        if handle.visual is not None:
            handle.visual.remove()
            self.ax.figure.canvas.draw_idle()


# ---------------------------------------------------------------------------
# Plot
# ---------------------------------------------------------------------------

def draw_galaxy(
    params: GalaxyParameters,
    rng: Optional[np.random.Generator] = None,
    elev: Optional[float] = None,
    azim: Optional[float] = None,
    verbose: bool = False,
) -> Tuple[plt.Figure, GalaxyHandle]:
    """Generate a galaxy from *params* and draw it on a new figure.

    Returns
    -------
    fig    : matplotlib Figure
    handle : the attached GalaxyHandle
    """
    fig, ax = new_galaxy_axes(elev=elev, azim=azim)
    gen = GalaxyGenerator(MatplotlibScene(ax), rng=rng, verbose=verbose)
    handle = gen.generate(params)

    ax.set_title(
        f"{params.count:,} particles  |  {params.branch_count} arms  |  "
        f"spin {params.spin:g}",
        color="#aaaaaa", fontsize=10,
    )
    return fig, handle


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="galaxy_render.py",
        description="Render a spiral galaxy with matplotlib.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--params", default=None, metavar="FILE",
                   help="JSON parameter preset (defaults used when omitted).")
    p.add_argument("--save",   default=None, metavar="FILE",
                   help="Save figure to FILE (png/pdf/svg) instead of displaying.")
    p.add_argument("--elev",   type=float, default=None,
                   help="Camera elevation in degrees (default: viewer camera).")
    p.add_argument("--azim",   type=float, default=None,
                   help="Camera azimuth in degrees (default: viewer camera).")
    return p


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args   = parser.parse_args(argv)

    try:
        params = load_parameters(args.params) if args.params else GalaxyParameters()
        fig, _handle = draw_galaxy(params, elev=args.elev, azim=args.azim)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    if args.save:
        fig.savefig(args.save, dpi=150, facecolor=fig.get_facecolor())
        print(f"Saved figure to {args.save}")
    else:
        plt.show()


if __name__ == "__main__":
    main()
