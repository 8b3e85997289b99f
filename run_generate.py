"""
run_generate.py
===============
CLI entrypoint for the spiral-galaxy generator.

All parameters are optional; unspecified parameters fall back to the preset
given with ``--params`` (when present) and then to the defaults defined in
``GalaxyParameters``.

Quick start
-----------
    python run_generate.py

With custom parameters (matching the default preset)::

    python run_generate.py \\
        --count 100000 \\
        --size 0.01 \\
        --radius 5 \\
        --branch_count 3 \\
        --spin 1 \\
        --randomness 0.2 \\
        --randomness_power 3 \\
        --inward_color "#e55e15" \\
        --outward_color "#4848db" \\
        --save galaxy.png

Keep the parameters for later::

    python run_generate.py --spin -1.5 --dump_params preset.json
    python galaxy_render.py --params preset.json
"""

import argparse
import dataclasses
import sys

from galaxygen import (
    GalaxyGenerator,
    GalaxyParameters,
    PointCloudScene,
    load_parameters,
    run_checks,
    save_parameters,
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="run_generate.py",
        description=(
            "Procedural spiral-galaxy point-cloud generator.\n"
            "Generates the galaxy, prints acceptance checks, and optionally "
            "renders it."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Defaults are None so a --params preset can fill the gaps; the help text
    # shows the dataclass defaults instead.
    d = GalaxyParameters()

    # ── Particles ─────────────────────────────────────────────────────────
    p.add_argument(
        "--count", type=int, default=None,
        metavar="N",
        help=f"Number of particles to generate (default {d.count}).",
    )
    p.add_argument(
        "--size", type=float, default=None,
        metavar="S",
        help=f"Render-time point size (default {d.size}).",
    )

    # ── Shape ─────────────────────────────────────────────────────────────
    p.add_argument(
        "--radius", type=float, default=None,
        metavar="R",
        help=f"Outer galaxy radius (default {d.radius}).",
    )
    p.add_argument(
        "--branch_count", type=int, default=None,
        metavar="B",
        help=f"Number of spiral arms, >= 2 (default {d.branch_count}).",
    )
    p.add_argument(
        "--spin", type=float, default=None,
        metavar="W",
        help=f"Radians of twist per unit radius; sign sets the direction "
             f"(default {d.spin}).",
    )

    # ── Scatter ───────────────────────────────────────────────────────────
    p.add_argument(
        "--randomness", type=float, default=None,
        metavar="J",
        help=f"Maximum positional jitter per axis (default {d.randomness}).",
    )
    p.add_argument(
        "--randomness_power", type=float, default=None,
        metavar="P",
        help=f"Exponent biasing the jitter toward zero; larger = tighter arms "
             f"(default {d.randomness_power}).",
    )

    # ── Colour ────────────────────────────────────────────────────────────
    p.add_argument(
        "--inward_color", default=None,
        metavar="COLOR",
        help=f"Colour at the centre (default {d.inward_color}).",
    )
    p.add_argument(
        "--outward_color", default=None,
        metavar="COLOR",
        help=f"Colour at the rim (default {d.outward_color}).",
    )

    # ── Reproducibility ───────────────────────────────────────────────────
    p.add_argument(
        "--seed", type=int, default=None,
        metavar="S",
        help="Random seed for reproducible output (default: random every run).",
    )

    # ── Presets / output ──────────────────────────────────────────────────
    p.add_argument(
        "--params", default=None,
        metavar="FILE",
        help="Load a JSON parameter preset; explicit flags override it.",
    )
    p.add_argument(
        "--dump_params", default=None,
        metavar="FILE",
        help="Write the resolved parameters to FILE as JSON.",
    )
    p.add_argument(
        "--save", default=None,
        metavar="FILE",
        help="Render the galaxy and save the figure to FILE.",
    )
    p.add_argument(
        "--show", action="store_true",
        help="Render the galaxy in an interactive window.",
    )
    p.add_argument(
        "--quiet", action="store_true",
        help="Suppress progress output and the acceptance table.",
    )

    return p


def resolve_parameters(args: argparse.Namespace) -> GalaxyParameters:
    """Merge preset file and explicit flags into one parameter set."""
    params = load_parameters(args.params) if args.params else GalaxyParameters()
    overrides = {
        f.name: getattr(args, f.name)
        for f in dataclasses.fields(GalaxyParameters)
        if getattr(args, f.name, None) is not None
    }
    params = dataclasses.replace(params, **overrides)
    params.validate()
    return params


def main(argv=None) -> None:
    parser = build_parser()
    args   = parser.parse_args(argv)

    try:
        params = resolve_parameters(args)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    verbose = not args.quiet

    if verbose:
        # Print config so the user can confirm parameters before waiting
        print("Configuration")
        print("─" * 40)
        for field in params.__dataclass_fields__:
            print(f"  {field:<18} = {getattr(params, field)}")
        print()

    if args.save or args.show:
        # Imported lazily so headless runs never touch a GUI backend
        import matplotlib.pyplot as plt
        from galaxy_render import draw_galaxy

        fig, handle = draw_galaxy(params, verbose=verbose)
    else:
        gen = GalaxyGenerator(PointCloudScene(), verbose=verbose)
        handle = gen.generate(params)

    results = run_checks(handle, verbose=verbose)

    if args.dump_params:
        save_parameters(params, args.dump_params)
        if verbose:
            print(f"Wrote {args.dump_params}")

    if args.save:
        fig.savefig(args.save, dpi=150, facecolor=fig.get_facecolor())
        if verbose:
            print(f"Saved figure to {args.save}")
    if args.show:
        plt.show()

    if not all(results.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
