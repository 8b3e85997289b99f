"""
galaxy_gui.py
=============
Tkinter GUI front-end for the spiral-galaxy generator.

Layout
------
Left panel   – galaxy parameters (particles, shape, scatter, colour,
               reproducibility), one labelled group each.
Centre panel – embedded matplotlib 3-D view; drag with the left mouse button
               to orbit, right button to zoom.

Every parameter regenerates the galaxy when an edit is *committed*: slider
release, <Return> or focus-out in a spinbox, or closing the colour picker.
Intermediate slider positions never trigger a regeneration.  Generation runs
on the Tk thread, so the window is unresponsive for the duration of a pass
(about a second for a million particles).

Usage
-----
    python galaxy_gui.py

Dependencies
------------
Same as the core generator (numpy, pandas, scipy, matplotlib) plus tkinter,
which is bundled with the standard Python installer.  On Ubuntu/Debian:
    sudo apt-get install python3-tk
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import tkinter as tk
from tkinter import ttk, colorchooser, filedialog, messagebox

import matplotlib
matplotlib.use("TkAgg")
import matplotlib.pyplot as plt
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg, NavigationToolbar2Tk

from galaxygen import (
    PARAM_RANGES,
    GalaxyGenerator,
    GalaxyParameters,
    GalaxySlot,
    clamp_parameters,
    load_parameters,
    save_parameters,
    snap_to_range,
)
from galaxy_render import MatplotlibScene, new_galaxy_axes


# ---------------------------------------------------------------------------
# Reusable compound widgets
# ---------------------------------------------------------------------------

class SliderEntry(ttk.Frame):
    """Linked horizontal scale + spinbox for a numeric parameter.

    *on_commit* fires once per finished edit (scale released, spinbox
    confirmed), never while the scale is being dragged.
    """

    def __init__(
        self,
        parent,
        label: str,
        var: tk.Variable,
        lo: float,
        hi: float,
        step: float = 1.0,
        on_commit: Optional[Callable[[], None]] = None,
        label_width: int = 22,
        spin_width: int = 9,
        **kw,
    ):
        super().__init__(parent, **kw)
        self._var  = var
        self._step = step
        self._lo   = lo
        self._hi   = hi
        self._busy = False
        self._on_commit = on_commit

        ttk.Label(self, text=label, width=label_width, anchor="w").grid(
            row=0, column=0, sticky="w", padx=(4, 2), pady=1,
        )
        self._scale = ttk.Scale(
            self, orient="horizontal", length=130,
            from_=lo, to=hi, variable=var,
            command=self._on_scale,
        )
        self._scale.grid(row=0, column=1, padx=4)
        self._scale.bind("<ButtonRelease-1>", self._commit)
        self._spin = ttk.Spinbox(
            self, from_=lo, to=hi, increment=step,
            textvariable=var, width=spin_width,
            command=self._commit,
        )
        self._spin.grid(row=0, column=2, padx=(2, 4))
        self._spin.bind("<Return>",   self._commit)
        self._spin.bind("<FocusOut>", self._commit)

    def _on_scale(self, _val: str) -> None:
        if self._busy:
            return
        try:
            raw = float(_val)
        except ValueError:
            return
        snapped = snap_to_range(raw, self._lo, self._hi, self._step)
        if abs(raw - snapped) > 1e-9:
            self._busy = True
            self._var.set(snapped)
            self._busy = False

    def _clamp(self) -> None:
        try:
            val = float(self._spin.get())
        except ValueError:
            val = self._lo
        val = snap_to_range(val, self._lo, self._hi, self._step)
        if isinstance(self._var, tk.IntVar):
            val = int(round(val))
        self._var.set(val)

    def _commit(self, _evt=None) -> None:
        self._clamp()
        if self._on_commit is not None:
            self._on_commit()


# ---------------------------------------------------------------------------

class ColorEntry(ttk.Frame):
    """Colour swatch + hex entry + colour-picker button."""

    def __init__(self, parent, label: str, var: tk.StringVar,
                 on_commit: Optional[Callable[[], None]] = None,
                 label_width: int = 22, **kw):
        super().__init__(parent, **kw)
        self._var = var
        self._on_commit = on_commit

        ttk.Label(self, text=label, width=label_width, anchor="w").grid(
            row=0, column=0, sticky="w", padx=(4, 2), pady=1,
        )
        self._swatch = tk.Label(self, width=3, relief="sunken", cursor="hand2")
        self._swatch.grid(row=0, column=1, padx=(2, 2))
        self._swatch.bind("<Button-1>", self._open_picker)

        self._entry = ttk.Entry(self, textvariable=var, width=10)
        self._entry.grid(row=0, column=2, padx=2)
        self._entry.bind("<Return>", self._commit)

        ttk.Button(self, text="Pick…", width=6,
                   command=self._open_picker).grid(row=0, column=3, padx=(2, 4))

        var.trace_add("write", self._refresh_swatch)
        self._refresh_swatch()

    def _refresh_swatch(self, *_) -> None:
        val = self._var.get().strip()
        try:
            self._swatch.configure(bg=val)
        except tk.TclError:
            self._swatch.configure(bg="#888888")

    def _open_picker(self, _evt=None) -> None:
        _rgb, hexval = colorchooser.askcolor(
            color=self._var.get(), title="Choose colour", parent=self)
        if hexval:
            self._var.set(hexval.lower())
            self._commit()

    def _commit(self, _evt=None) -> None:
        if self._on_commit is not None:
            self._on_commit()


# ---------------------------------------------------------------------------
# Main GUI class
# ---------------------------------------------------------------------------

class GalaxyGUI:
    """Top-level GUI application window."""

    def __init__(self, root: tk.Tk) -> None:
        self.root = root
        root.title("Galaxy Generator")
        root.minsize(1100, 720)

        self._build_vars()
        self._build_ui()

        self._fig, self._ax = new_galaxy_axes()
        self._canvas = FigureCanvasTkAgg(self._fig, master=self._preview_frame)
        self._canvas.get_tk_widget().pack(fill="both", expand=True)
        toolbar_frame = ttk.Frame(self._preview_frame)
        toolbar_frame.pack(fill="x")
        NavigationToolbar2Tk(self._canvas, toolbar_frame).update()

        self._slot = GalaxySlot(GalaxyGenerator(MatplotlibScene(self._ax), verbose=True))
        root.protocol("WM_DELETE_WINDOW", self._on_close)

        # Startup pass with the default parameters
        self.root.after(0, self._regenerate)

    # ── Variable definitions ──────────────────────────────────────────────

    def _build_vars(self) -> None:
        iv = tk.IntVar
        dv = tk.DoubleVar
        sv = tk.StringVar

        d = GalaxyParameters()
        self.v_count            = iv(value=d.count)
        self.v_size             = dv(value=d.size)
        self.v_radius           = dv(value=d.radius)
        self.v_branch_count     = iv(value=d.branch_count)
        self.v_spin             = dv(value=d.spin)
        self.v_randomness       = dv(value=d.randomness)
        self.v_randomness_power = dv(value=d.randomness_power)
        self.v_inward_color     = sv(value=d.inward_color)
        self.v_outward_color    = sv(value=d.outward_color)
        self.v_seed             = sv(value="")

    # ── UI construction ───────────────────────────────────────────────────

    def _build_ui(self) -> None:
        self._build_action_bar()

        paned = ttk.PanedWindow(self.root, orient="horizontal")
        paned.pack(fill="both", expand=True, padx=6, pady=(6, 0))

        left_outer = ttk.Frame(paned, width=400)
        left_outer.pack_propagate(False)
        paned.add(left_outer, weight=0)

        self._preview_frame = ttk.Frame(paned)
        paned.add(self._preview_frame, weight=1)

        self._build_param_panel(left_outer)

    def _slider(self, parent, label: str, name: str) -> None:
        lo, hi, step = PARAM_RANGES[name]
        SliderEntry(parent, label, getattr(self, f"v_{name}"), lo, hi, step,
                    on_commit=self._on_commit).pack(fill="x")

    def _build_param_panel(self, parent: ttk.Frame) -> None:
        """Left panel: one labelled group per parameter family."""
        def group(title):
            frame = ttk.LabelFrame(parent, text=title, padding=(4, 2))
            frame.pack(fill="x", padx=4, pady=3)
            return frame

        box = group("Particles")
        self._slider(box, "Particles (count)",   "count")
        self._slider(box, "Particle size",       "size")

        box = group("Shape")
        self._slider(box, "Galaxy radius",       "radius")
        self._slider(box, "Branches",            "branch_count")
        self._slider(box, "Spin",                "spin")

        box = group("Scatter")
        self._slider(box, "Randomness",          "randomness")
        self._slider(box, "Randomness power",    "randomness_power")

        box = group("Colour")
        ColorEntry(box, "Inward colour",  self.v_inward_color,
                   on_commit=self._on_commit).pack(fill="x")
        ColorEntry(box, "Outward colour", self.v_outward_color,
                   on_commit=self._on_commit).pack(fill="x")

        box = group("Reproducibility")
        ttk.Label(box, text="Seed (blank = random)", width=22, anchor="w").pack(
            side="left", padx=(4, 2))
        seed_entry = ttk.Entry(box, textvariable=self.v_seed, width=10)
        seed_entry.pack(side="left")
        seed_entry.bind("<Return>", lambda _e: self._on_commit())

    # ── Action bar ────────────────────────────────────────────────────────

    def _build_action_bar(self) -> None:
        bar = ttk.Frame(self.root)
        bar.pack(side="bottom", fill="x", padx=6, pady=(0, 6))

        self.btn_generate = ttk.Button(bar, text="Regenerate",
                                       command=self._regenerate, width=12)
        self.btn_generate.pack(side="left", padx=(0, 4))

        ttk.Separator(bar, orient="vertical").pack(side="left", fill="y", padx=8, pady=4)

        ttk.Button(bar, text="Load preset…", command=self._on_load,
                   width=13).pack(side="left", padx=4)
        ttk.Button(bar, text="Save preset…", command=self._on_save,
                   width=13).pack(side="left", padx=4)
        ttk.Button(bar, text="Export PNG…", command=self._on_export_png,
                   width=13).pack(side="left", padx=4)

        self._status_var = tk.StringVar(value="Ready.")
        ttk.Label(bar, textvariable=self._status_var, anchor="w").pack(
            side="left", padx=12)

    # ── Helpers ───────────────────────────────────────────────────────────

    def _build_params(self) -> GalaxyParameters:
        seed = self.v_seed.get().strip()
        return clamp_parameters(GalaxyParameters(
            count            = int(self.v_count.get()),
            size             = self.v_size.get(),
            radius           = self.v_radius.get(),
            branch_count     = int(self.v_branch_count.get()),
            spin             = self.v_spin.get(),
            randomness       = self.v_randomness.get(),
            randomness_power = self.v_randomness_power.get(),
            inward_color     = self.v_inward_color.get().strip(),
            outward_color    = self.v_outward_color.get().strip(),
            seed             = int(seed) if seed else None,
        ))

    def _apply_params(self, params: GalaxyParameters) -> None:
        self.v_count.set(params.count)
        self.v_size.set(params.size)
        self.v_radius.set(params.radius)
        self.v_branch_count.set(params.branch_count)
        self.v_spin.set(params.spin)
        self.v_randomness.set(params.randomness)
        self.v_randomness_power.set(params.randomness_power)
        self.v_inward_color.set(params.inward_color)
        self.v_outward_color.set(params.outward_color)
        self.v_seed.set("" if params.seed is None else str(params.seed))

    def _status(self, msg: str) -> None:
        self._status_var.set(msg)

    # ── Regenerate action ─────────────────────────────────────────────────

    def _on_commit(self) -> None:
        """Regenerate after an edit, unless nothing actually changed."""
        current = self._slot.current
        try:
            unchanged = current is not None and current.params == self._build_params()
        except (tk.TclError, ValueError):
            unchanged = False
        if not unchanged:
            self._regenerate()

    def _regenerate(self) -> None:
        """Build a galaxy from the current panel values and swap it in.

        Runs synchronously; on failure the previous galaxy stays on screen.
        """
        try:
            params = self._build_params()
        except (tk.TclError, ValueError) as exc:
            messagebox.showerror("Invalid parameters", str(exc))
            return

        self._status(f"Generating {params.count:,} particles…")
        self.root.config(cursor="watch")
        self.root.update_idletasks()
        t0 = time.perf_counter()
        try:
            self._slot.regenerate(params)
        except (ValueError, MemoryError) as exc:
            msg = str(exc) or type(exc).__name__
            self._status(f"Generation failed: {msg}")
            messagebox.showerror("Generation failed", msg)
            return
        finally:
            self.root.config(cursor="")

        self._canvas.draw_idle()
        self._status(f"{params.count:,} particles on {params.branch_count} arms  "
                     f"({time.perf_counter() - t0:.2f}s)")

    # ── Presets / export ──────────────────────────────────────────────────

    def _on_load(self) -> None:
        path = filedialog.askopenfilename(
            title="Load parameter preset", filetypes=[("JSON", "*.json")])
        if not path:
            return
        try:
            params = load_parameters(path)
        except (OSError, ValueError) as exc:
            messagebox.showerror("Load failed", str(exc))
            return
        self._apply_params(params)
        self._regenerate()

    def _on_save(self) -> None:
        path = filedialog.asksaveasfilename(
            title="Save parameter preset", defaultextension=".json",
            filetypes=[("JSON", "*.json")])
        if not path:
            return
        try:
            save_parameters(self._build_params(), path)
        except (OSError, ValueError, tk.TclError) as exc:
            messagebox.showerror("Save failed", str(exc))
            return
        self._status(f"Saved → {path}")

    def _on_export_png(self) -> None:
        path = filedialog.asksaveasfilename(
            title="Export PNG", defaultextension=".png",
            filetypes=[("PNG image", "*.png")])
        if not path:
            return
        self._fig.savefig(path, dpi=150, facecolor=self._fig.get_facecolor())
        self._status(f"Saved → {path}")

    def _on_close(self) -> None:
        self._slot.clear()
        plt.close(self._fig)
        self.root.destroy()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    root = tk.Tk()
    GalaxyGUI(root)
    root.mainloop()


if __name__ == "__main__":
    main()
