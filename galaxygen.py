"""
galaxygen.py
============
Core procedural generator for the spiral-galaxy point cloud.

Generates ``count`` particles arranged along ``branch_count`` evenly spaced
spiral arms in a flat disk, scatters them with power-biased jitter, and
colours each particle by blending an inward and an outward colour according
to its radius.

Per particle ``i``
------------------
1. radius        = U(0, R)                       fresh draw per particle
2. branch angle  = (i mod B) / B · 2π            arm chosen by index residue
3. spin angle    = spin · radius                 twist grows with radius
4. jitter (x3)   = ±U(0, 1) ** power · randomness
5. position      = (cos(a) · radius + jx,  jy,  sin(a) · radius + jz)
                   with a = branch angle + spin angle
6. colour        = lerp(inward, outward, radius / R)

The generated buffers are wrapped in a ``GalaxyHandle`` and attached to a
``Scene``.  Each regeneration releases the previous handle before the new one
is installed, so a scene never owns more than one galaxy at a time.

Usage (importable)
------------------
    from galaxygen import GalaxyParameters, GalaxyGenerator, PointCloudScene
    scene  = PointCloudScene()
    gen    = GalaxyGenerator(scene)
    handle = gen.generate(GalaxyParameters(count=50_000))
    handle = gen.generate(GalaxyParameters(spin=-1.2), previous=handle)

Usage (script, uses all defaults)
----------------------------------
    python galaxygen.py
"""

from __future__ import annotations

import dataclasses
import json
import math
import time
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from matplotlib.colors import to_rgb
from scipy.stats import chisquare


# ---------------------------------------------------------------------------
# Parameter dataclass
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class GalaxyParameters:
    """All tunable parameters for galaxy generation.

    Spatial units
    -------------
    Distances share an arbitrary scene unit.  The default camera sits about
    5.7 units from the centre, which frames the default 5-unit galaxy.

    Notes on randomness
    -------------------
    ``randomness`` is the maximum jitter per axis.  ``randomness_power``
    biases the jitter toward zero: a uniform draw raised to a power > 1
    clusters particles tightly around the arm centreline, with a sparse halo.
    """

    # ---- particle count / appearance ----
    count: int = 100_000
    size: float = 0.01           # render-time point size; no effect on positions

    # ---- shape ----
    radius: float = 5.0          # outer galaxy radius
    branch_count: int = 3        # number of spiral arms
    spin: float = 1.0            # radians of twist per unit radius

    # ---- scatter ----
    randomness: float = 0.2
    randomness_power: float = 3.0

    # ---- colour (any matplotlib colour spec) ----
    inward_color: str = "#e55e15"
    outward_color: str = "#4848db"

    # ---- reproducibility (None = fresh entropy on every pass) ----
    seed: Optional[int] = None

    @property
    def inward_rgb(self) -> Tuple[float, float, float]:
        return to_rgb(self.inward_color)

    @property
    def outward_rgb(self) -> Tuple[float, float, float]:
        return to_rgb(self.outward_color)

    def snapshot(self) -> "GalaxyParameters":
        """Independent copy read by a single generation pass."""
        return dataclasses.replace(self)

    def validate(self) -> None:
        """Raise ``ValueError`` listing every constraint this set violates."""
        problems = []

        for name, lowest in (("count", 1), ("branch_count", 2)):
            val = getattr(self, name)
            if not _is_int(val) or val < lowest:
                problems.append(f"{name} must be an integer >= {lowest} (got {val!r})")

        # (name, lower bound, bound is inclusive)
        for name, lo, inclusive in (("size", 0.0, False),
                                    ("radius", 0.0, False),
                                    ("spin", None, True),
                                    ("randomness", 0.0, True),
                                    ("randomness_power", 0.0, False)):
            val = getattr(self, name)
            if not _is_finite(val):
                problems.append(f"{name} must be a finite number (got {val!r})")
            elif lo is not None and (val < lo or (val == lo and not inclusive)):
                op = ">=" if inclusive else ">"
                problems.append(f"{name} must be {op} {lo:g} (got {val})")

        for name in ("inward_color", "outward_color"):
            try:
                to_rgb(getattr(self, name))
            except ValueError:
                problems.append(f"{name} is not a valid colour "
                                f"(got {getattr(self, name)!r})")

        if self.seed is not None and (not _is_int(self.seed) or self.seed < 0):
            problems.append(
                f"seed must be a non-negative integer or None (got {self.seed!r})")

        if problems:
            raise ValueError("Invalid galaxy parameters: " + "; ".join(problems))

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "GalaxyParameters":
        """Build parameters from a preset dict; unknown keys are rejected.

        Whole-number floats in integer fields (``3.0`` from a hand-edited
        preset) are converted to ``int``.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown galaxy parameter(s): {', '.join(unknown)}")
        data = dict(data)
        for name in _INT_FIELDS + ("seed",):
            val = data.get(name)
            if isinstance(val, float) and val.is_integer():
                data[name] = int(val)
        return cls(**data)


def _is_int(val) -> bool:
    return isinstance(val, (int, np.integer)) and not isinstance(val, bool)


def _is_finite(val) -> bool:
    return (isinstance(val, (int, float, np.integer, np.floating))
            and not isinstance(val, bool) and math.isfinite(val))


_INT_FIELDS = ("count", "branch_count")


# ---------------------------------------------------------------------------
# Editing ranges (lo, hi, step) for the parameter panel
# ---------------------------------------------------------------------------

PARAM_RANGES: dict[str, Tuple[float, float, float]] = {
    "count":            (1_000, 1_000_000, 100),
    "size":             (0.001, 0.1,       0.001),
    "radius":           (0.01,  20.0,      0.01),
    "branch_count":     (2,     20,        1),
    "spin":             (-2.0,  2.0,       0.1),
    "randomness":       (0.0,   1.0,       0.1),
    "randomness_power": (1.0,   10.0,      0.1),
}


def snap_to_range(value: float, lo: float, hi: float, step: float) -> float:
    """Clamp *value* to [lo, hi] and snap it to the nearest multiple of *step*."""
    val = max(lo, min(hi, float(value)))
    val = round(round(val / step) * step, 10)
    return max(lo, min(hi, val))


def clamp_parameters(params: GalaxyParameters) -> GalaxyParameters:
    """Return a copy with every ranged field clamped to its editing range and
    snapped to its step.  The parameter panel passes every set it builds
    through here before generating."""
    out = params.snapshot()
    for name, (lo, hi, step) in PARAM_RANGES.items():
        val = snap_to_range(getattr(out, name), lo, hi, step)
        setattr(out, name, int(round(val)) if name in _INT_FIELDS else val)
    return out


def load_parameters(path: str) -> GalaxyParameters:
    """Read a JSON parameter preset written by ``save_parameters``."""
    with open(path) as f:
        return GalaxyParameters.from_dict(json.load(f))


def save_parameters(params: GalaxyParameters, path: str) -> None:
    with open(path, "w") as f:
        json.dump(params.to_dict(), f, indent=2)


# ---------------------------------------------------------------------------
# Buffer generation
# ---------------------------------------------------------------------------

def spiral_jitter(
    rng: np.random.Generator,
    n: int,
    randomness: float,
    randomness_power: float,
) -> np.ndarray:
    """Per-axis jitter of shape ``(n, 3)``.

    Each term is ``sign · U(0, 1) ** randomness_power · randomness`` with an
    independent ±1 sign, so ``|jitter| <= randomness`` on every axis.
    """
    magnitude = rng.random((n, 3)) ** randomness_power
    sign = np.where(rng.random((n, 3)) < 0.5, 1.0, -1.0)
    return sign * magnitude * randomness


def generate_buffers(
    params: GalaxyParameters,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Compute position and colour buffers for *params*.

    Parameters
    ----------
    params : GalaxyParameters  – read once; not modified
    rng    : numpy Generator   – source of every random draw

    Returns
    -------
    positions : (count, 3) float32  – x, y, z
    colors    : (count, 3) float32  – r, g, b in [0, 1]
    radii     : (count,)   float64  – drawn radius of each particle
    branches  : (count,)   int64    – arm index, ``i mod branch_count``
    """
    n = int(params.count)
    b = int(params.branch_count)

    radii = rng.uniform(0.0, params.radius, n)

    branches = np.arange(n, dtype=np.int64) % b
    branch_angle = branches / b * 2.0 * math.pi
    angle = branch_angle + params.spin * radii

    jitter = spiral_jitter(rng, n, params.randomness, params.randomness_power)

    positions = np.empty((n, 3), dtype=np.float32)
    positions[:, 0] = np.cos(angle) * radii + jitter[:, 0]
    positions[:, 1] = jitter[:, 1]          # flat disk: vertical scatter only
    positions[:, 2] = np.sin(angle) * radii + jitter[:, 2]

    # Blend factor t ∈ [0, 1]; clip guards float round-off at the rim
    t = np.clip(radii / params.radius, 0.0, 1.0)[:, None]
    inward  = np.asarray(params.inward_rgb)
    outward = np.asarray(params.outward_rgb)
    colors = (inward + (outward - inward) * t).astype(np.float32)

    return positions, colors, radii, branches


# ---------------------------------------------------------------------------
# Handle + scene collaborators
# ---------------------------------------------------------------------------

class GalaxyHandle:
    """One generated galaxy: buffers, the parameters that built them, and the
    visual the scene created for them.

    Treated as a single unit of ownership: ``release()`` frees everything.
    """

    def __init__(
        self,
        params: GalaxyParameters,
        positions: np.ndarray,
        colors: np.ndarray,
        radii: np.ndarray,
        branches: np.ndarray,
    ) -> None:
        self.params    = params
        self.positions = positions
        self.colors    = colors
        self.radii     = radii
        self.branches  = branches
        self.visual    = None
        self.released  = False

    def __len__(self) -> int:
        return len(self.positions)

    def __repr__(self) -> str:
        state = "released" if self.released else f"{len(self):,} particles"
        return f"<GalaxyHandle {state}>"

    def release(self) -> None:
        """Drop the buffers.  Safe to call more than once."""
        if self.released:
            return
        self.positions = np.empty((0, 3), dtype=np.float32)
        self.colors    = np.empty((0, 3), dtype=np.float32)
        self.radii     = np.empty(0)
        self.branches  = np.empty(0, dtype=np.int64)
        self.visual    = None
        self.released  = True

    def to_frame(self) -> pd.DataFrame:
        """Particles as a DataFrame (x, y, z, r, g, b, radius, branch)."""
        return pd.DataFrame({
            "x":      self.positions[:, 0],
            "y":      self.positions[:, 1],
            "z":      self.positions[:, 2],
            "r":      self.colors[:, 0],
            "g":      self.colors[:, 1],
            "b":      self.colors[:, 2],
            "radius": self.radii,
            "branch": self.branches,
        })


class Scene:
    """Owner of the visual objects the generator installs.

    Subclasses override ``_create_visual`` / ``_remove_visual`` /
    ``_free_visual``; the bookkeeping here stays the same for all of them.
    """

    def __init__(self) -> None:
        self.handles: list[GalaxyHandle] = []
        self.attach_count  = 0
        self.detach_count  = 0
        self.release_count = 0

    def attach(self, handle: GalaxyHandle):
        visual = self._create_visual(handle)
        handle.visual = visual
        self.handles.append(handle)
        self.attach_count += 1
        return visual

    def detach(self, handle: GalaxyHandle) -> None:
        if handle in self.handles:
            self._remove_visual(handle)
            self.handles.remove(handle)
            self.detach_count += 1

    def release(self, handle: GalaxyHandle) -> None:
        if handle.released:
            return
        self._free_visual(handle)
        handle.release()
        self.release_count += 1

    # ---- hooks ----

    def _create_visual(self, handle: GalaxyHandle):
        return None

    def _remove_visual(self, handle: GalaxyHandle) -> None:
        pass

    def _free_visual(self, handle: GalaxyHandle) -> None:
        pass


class PointCloudScene(Scene):
    """Headless scene: the visual is just a read-only view of the buffers."""

    def _create_visual(self, handle: GalaxyHandle):
        return {"positions": handle.positions, "colors": handle.colors,
                "size": handle.params.size}


# ---------------------------------------------------------------------------
# Acceptance checks
# ---------------------------------------------------------------------------

def run_checks(handle: GalaxyHandle, verbose: bool = True) -> dict[str, bool]:
    """Check a generated galaxy against its parameters.

    Returns a dict of named boolean results; prints a table when *verbose*.
    """
    p = handle.params
    frame = handle.to_frame()
    results: dict[str, bool] = {}
    lines: list[str] = []

    n = len(frame)
    results["count"] = n == p.count
    lines.append(f"  Particles  : {n:>9,}  (target {p.count:,})  "
                 f"{'✓' if results['count'] else '✗ FAIL'}")

    if n:
        r_min, r_max = frame["radius"].min(), frame["radius"].max()
        results["radius"] = r_min >= 0.0 and r_max <= p.radius
        lines.append(f"  Radius     : [{r_min:.4f}, {r_max:.4f}]  within "
                     f"[0, {p.radius}]  {'✓' if results['radius'] else '✗ FAIL'}")

        rgb = frame[["r", "g", "b"]].to_numpy()
        results["color"] = bool(rgb.min() >= 0.0 and rgb.max() <= 1.0)
        lines.append(f"  Colour     : [{rgb.min():.3f}, {rgb.max():.3f}]  within "
                     f"[0, 1]  {'✓' if results['color'] else '✗ FAIL'}")

        y_max = float(frame["y"].abs().max())
        results["scatter"] = y_max <= p.randomness + 1e-6
        lines.append(f"  Max |y|    : {y_max:>9.4f}  <= {p.randomness}  "
                     f"{'✓' if results['scatter'] else '✗ FAIL'}")

        occupancy = (frame["branch"].value_counts()
                     .reindex(range(p.branch_count), fill_value=0))
        stat, pvalue = chisquare(occupancy.to_numpy())
        results["branches"] = bool(pvalue > 0.01)
        lines.append(f"  Branches   : min={occupancy.min():,}  "
                     f"max={occupancy.max():,}  chi2={stat:.3f}  p={pvalue:.3f}  "
                     f"{'✓' if results['branches'] else '✗ FAIL'}")

    if verbose:
        sep = "─" * 56
        print(f"\n{sep}")
        print("  ACCEPTANCE TESTS")
        print(sep)
        for line in lines:
            print(line)
        print(sep + "\n")

    return results


# ---------------------------------------------------------------------------
# Main generator class
# ---------------------------------------------------------------------------

class GalaxyGenerator:
    """Builds galaxies from parameters and installs them in *scene*.

    Parameters
    ----------
    scene   : Scene
        Receives ``attach`` / ``detach`` / ``release`` calls.
    rng     : numpy Generator, optional
        Shared random source for every pass.  When omitted, each pass uses
        ``default_rng(params.seed)``.
    verbose : bool
        Print progress and timings to stdout.
    """

    def __init__(
        self,
        scene: Scene,
        rng: Optional[np.random.Generator] = None,
        verbose: bool = False,
    ) -> None:
        self.scene   = scene
        self._rng    = rng
        self.verbose = verbose

    def _log(self, msg: str) -> None:
        if self.verbose:
            print(msg)

    def build(self, params: GalaxyParameters) -> GalaxyHandle:
        """Validate, snapshot and compute a detached handle."""
        params.validate()
        snap = params.snapshot()
        rng = self._rng if self._rng is not None else np.random.default_rng(snap.seed)

        t0 = time.perf_counter()
        positions, colors, radii, branches = generate_buffers(snap, rng)
        self._log(f"  {len(positions):,} particles on {snap.branch_count} arms "
                  f"generated in {time.perf_counter() - t0:.2f}s")
        return GalaxyHandle(snap, positions, colors, radii, branches)

    def release(self, handle: GalaxyHandle) -> None:
        """Detach *handle* from the scene and free its resources."""
        self.scene.detach(handle)
        self.scene.release(handle)

    def generate(
        self,
        params: GalaxyParameters,
        previous: Optional[GalaxyHandle] = None,
    ) -> GalaxyHandle:
        """Generate a fresh galaxy, replacing *previous* in the scene.

        The new buffers are built before anything is released: if building
        raises (invalid parameters, ``MemoryError``) *previous* stays
        attached and the exception propagates.
        """
        self._log("Generating galaxy …")
        handle = self.build(params)

        if previous is not None:
            self.release(previous)

        self.scene.attach(handle)
        return handle


class GalaxySlot:
    """The single "current galaxy" slot owned by a controller."""

    def __init__(self, generator: GalaxyGenerator) -> None:
        self.generator = generator
        self._current: Optional[GalaxyHandle] = None

    @property
    def current(self) -> Optional[GalaxyHandle]:
        return self._current

    def regenerate(self, params: GalaxyParameters) -> GalaxyHandle:
        self._current = self.generator.generate(params, previous=self._current)
        return self._current

    def clear(self) -> None:
        if self._current is not None:
            self.generator.release(self._current)
            self._current = None


# ---------------------------------------------------------------------------
# Script entry point (uses all GalaxyParameters defaults)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    gen = GalaxyGenerator(PointCloudScene(), verbose=True)
    run_checks(gen.generate(GalaxyParameters()))
