"""Tests for the galaxy generator core."""

import json
import math

import numpy as np
import pytest

import galaxygen
from galaxygen import (
    GalaxyGenerator,
    GalaxyParameters,
    GalaxySlot,
    PointCloudScene,
    clamp_parameters,
    generate_buffers,
    load_parameters,
    run_checks,
    save_parameters,
    snap_to_range,
    spiral_jitter,
)


class TestBuffers:
    def test_buffer_lengths_match_count(self, generator, small_params):
        handle = generator.generate(small_params)
        assert handle.positions.shape == (2_000, 3)
        assert handle.colors.shape == (2_000, 3)
        assert len(handle) == 2_000

    def test_single_particle(self, generator):
        handle = generator.generate(GalaxyParameters(count=1))
        assert handle.positions.shape == (1, 3)
        assert handle.branches.tolist() == [0]

    def test_blend_factor_and_colors_in_unit_range(self, generator, small_params):
        handle = generator.generate(small_params)
        t = handle.radii / small_params.radius
        assert t.min() >= 0.0 and t.max() <= 1.0
        assert handle.colors.min() >= 0.0
        assert handle.colors.max() <= 1.0

    def test_colors_interpolate_between_endpoints(self, rng):
        params = GalaxyParameters(count=500, inward_color="#ff8000",
                                  outward_color="#0080ff")
        _pos, colors, radii, _br = generate_buffers(params, rng)
        t = radii / params.radius
        expected_r = 1.0 + (0.0 - 1.0) * t
        np.testing.assert_allclose(colors[:, 0], expected_r, atol=1e-6)
        np.testing.assert_allclose(colors[:, 2], t, atol=1e-6)

    def test_branch_assignment_is_uniform(self, rng):
        params = GalaxyParameters(count=10_001, branch_count=7)
        _pos, _col, _rad, branches = generate_buffers(params, rng)
        occupancy = np.bincount(branches, minlength=7)
        expected = params.count / params.branch_count
        assert occupancy.max() - occupancy.min() <= 1
        assert np.all(np.abs(occupancy - expected) < 1)

    def test_branch_follows_index_residue(self, rng):
        params = GalaxyParameters(count=12, branch_count=4)
        _pos, _col, _rad, branches = generate_buffers(params, rng)
        assert branches.tolist() == [i % 4 for i in range(12)]

    def test_zero_randomness_lies_on_spiral(self, rng):
        params = GalaxyParameters(count=3_000, branch_count=5, spin=-1.3,
                                  randomness=0.0)
        positions, _col, radii, branches = generate_buffers(params, rng)
        theta = branches / 5 * 2.0 * math.pi + params.spin * radii
        np.testing.assert_allclose(positions[:, 0], np.cos(theta) * radii, atol=1e-5)
        np.testing.assert_allclose(positions[:, 2], np.sin(theta) * radii, atol=1e-5)
        assert np.all(positions[:, 1] == 0.0)

    def test_spiral_scenario(self, generator, spiral_params):
        handle = generator.generate(spiral_params)
        pos, col, radii = handle.positions, handle.colors, handle.radii

        planar = np.hypot(pos[:, 0], pos[:, 2])
        np.testing.assert_allclose(planar, radii, rtol=1e-5, atol=1e-5)
        assert radii.min() >= 0.0 and radii.max() <= 5.0
        assert np.all(pos[:, 1] == 0.0)

        order = np.argsort(radii)
        r_sorted, b_sorted = col[order, 0], col[order, 2]
        gaps = np.diff(radii[order])
        assert np.all(np.diff(r_sorted) <= 0)
        assert np.all(np.diff(b_sorted) >= 0)
        distinct = gaps > 1e-5
        assert np.all(np.diff(r_sorted)[distinct] < 0)
        assert np.all(np.diff(b_sorted)[distinct] > 0)
        assert np.all(col[:, 1] == 0.0)

    def test_jitter_bounded_by_randomness(self, rng):
        jitter = spiral_jitter(rng, 50_000, 0.3, 2.0)
        assert jitter.shape == (50_000, 3)
        assert np.abs(jitter).max() <= 0.3
        # both signs on every axis
        assert np.all((jitter > 0).any(axis=0))
        assert np.all((jitter < 0).any(axis=0))

    def test_randomness_power_concentrates_jitter(self, rng):
        loose = np.abs(spiral_jitter(rng, 50_000, 1.0, 1.0))
        tight = np.abs(spiral_jitter(rng, 50_000, 1.0, 5.0))
        # E|U| = 0.5 vs E|U**5| = 1/6
        assert loose.mean() == pytest.approx(0.5, abs=0.01)
        assert tight.mean() == pytest.approx(1 / 6, abs=0.01)

    def test_size_does_not_affect_positions(self):
        a = generate_buffers(GalaxyParameters(count=300, size=0.001),
                             np.random.default_rng(5))
        b = generate_buffers(GalaxyParameters(count=300, size=0.1),
                             np.random.default_rng(5))
        np.testing.assert_array_equal(a[0], b[0])

    def test_to_frame_columns(self, generator):
        frame = generator.generate(GalaxyParameters(count=50)).to_frame()
        assert list(frame.columns) == ["x", "y", "z", "r", "g", "b", "radius", "branch"]
        assert len(frame) == 50


class TestRandomness:
    def test_seeded_passes_are_reproducible(self, scene):
        gen = GalaxyGenerator(scene)
        params = GalaxyParameters(count=1_000, seed=42)
        first = gen.generate(params).positions.copy()
        second = gen.generate(params).positions
        np.testing.assert_array_equal(first, second)

    def test_unseeded_passes_differ(self, scene):
        gen = GalaxyGenerator(scene)
        params = GalaxyParameters(count=1_000)
        first = gen.generate(params).positions.copy()
        second = gen.generate(params).positions
        assert not np.array_equal(first, second)

    def test_regeneration_has_same_shape_statistics(self, scene):
        gen = GalaxyGenerator(scene)
        params = GalaxyParameters(count=20_000)
        a = gen.generate(params)
        stats_a = (len(a), a.radii.mean(), a.colors.mean(axis=0).copy())
        b = gen.generate(params)
        stats_b = (len(b), b.radii.mean(), b.colors.mean(axis=0))

        assert stats_a[0] == stats_b[0]
        assert b.radii.max() <= params.radius
        assert stats_a[1] == pytest.approx(stats_b[1], abs=0.05 * params.radius)
        np.testing.assert_allclose(stats_a[2], stats_b[2], atol=0.02)


class TestLifecycle:
    def test_second_generate_releases_first(self, generator, scene, small_params):
        first = generator.generate(small_params)
        second = generator.generate(small_params, previous=first)

        assert scene.handles == [second]
        assert first.released
        assert first.positions.shape == (0, 3)
        assert scene.release_count == 1
        assert not second.released

    def test_release_count_matches_prior_generations(self, generator, scene):
        slot = GalaxySlot(generator)
        for _ in range(4):
            slot.regenerate(GalaxyParameters(count=200))
        assert scene.release_count == 3
        assert scene.attach_count == 4
        assert scene.handles == [slot.current]

    def test_slot_clear_releases_current(self, generator, scene):
        slot = GalaxySlot(generator)
        handle = slot.regenerate(GalaxyParameters(count=200))
        slot.clear()
        assert slot.current is None
        assert handle.released
        assert scene.handles == []
        slot.clear()
        assert scene.release_count == 1

    def test_release_is_idempotent(self, generator, scene):
        handle = generator.generate(GalaxyParameters(count=10))
        generator.release(handle)
        generator.release(handle)
        assert scene.release_count == 1
        assert scene.detach_count == 1

    def test_failed_build_keeps_previous(self, generator, scene, monkeypatch):
        previous = generator.generate(GalaxyParameters(count=100))

        def boom(params, rng):
            raise MemoryError("cannot allocate")

        monkeypatch.setattr(galaxygen, "generate_buffers", boom)
        with pytest.raises(MemoryError):
            generator.generate(GalaxyParameters(count=10**6), previous=previous)

        assert scene.handles == [previous]
        assert not previous.released
        assert scene.release_count == 0

    def test_invalid_parameters_keep_previous(self, generator, scene):
        slot = GalaxySlot(generator)
        previous = slot.regenerate(GalaxyParameters(count=100))
        with pytest.raises(ValueError):
            slot.regenerate(GalaxyParameters(branch_count=1))
        assert slot.current is previous
        assert scene.handles == [previous]

    def test_handle_keeps_snapshot_of_parameters(self, generator):
        params = GalaxyParameters(count=500, spin=0.5)
        handle = generator.generate(params)
        params.count = 10
        params.spin = -2.0
        assert handle.params.count == 500
        assert handle.params.spin == 0.5
        assert handle.params is not params

    def test_point_cloud_visual_exposes_buffers(self, generator):
        handle = generator.generate(GalaxyParameters(count=20, size=0.05))
        assert handle.visual["positions"] is handle.positions
        assert handle.visual["size"] == 0.05


class TestParameters:
    def test_defaults_are_valid(self):
        params = GalaxyParameters()
        params.validate()
        assert params.count == 100_000
        assert params.branch_count == 3

    def test_colours_parse_to_rgb(self):
        params = GalaxyParameters(inward_color="#ff0000", outward_color="blue")
        assert params.inward_rgb == (1.0, 0.0, 0.0)
        assert params.outward_rgb == (0.0, 0.0, 1.0)

    @pytest.mark.parametrize("field, value", [
        ("count", 0),
        ("size", 0.0),
        ("radius", -1.0),
        ("branch_count", 1),
        ("randomness", -0.1),
        ("randomness_power", 0.0),
        ("inward_color", "not-a-colour"),
        ("size", math.inf),
        ("radius", math.inf),
        ("randomness", math.inf),
        ("randomness", math.nan),
        ("randomness_power", math.inf),
        ("spin", -math.inf),
        ("count", True),
        ("count", 2.5),
        ("branch_count", 3.0),
        ("seed", -1),
        ("seed", 1.5),
    ])
    def test_validate_rejects(self, field, value):
        params = GalaxyParameters(**{field: value})
        with pytest.raises(ValueError, match=field):
            params.validate()

    def test_validate_lists_every_problem(self):
        with pytest.raises(ValueError) as err:
            GalaxyParameters(count=0, radius=0).validate()
        assert "count" in str(err.value) and "radius" in str(err.value)

    def test_clamp_parameters(self):
        params = GalaxyParameters(count=5, spin=3.7, randomness=0.46,
                                  branch_count=25, radius=0.0)
        clamped = clamp_parameters(params)
        assert clamped.count == 1_000
        assert clamped.spin == 2.0
        assert clamped.randomness == pytest.approx(0.5)
        assert clamped.branch_count == 20
        assert isinstance(clamped.branch_count, int)
        assert clamped.radius == pytest.approx(0.01)
        assert params.count == 5

    def test_snap_to_range(self):
        assert snap_to_range(0.46, 0.0, 1.0, 0.1) == pytest.approx(0.5)
        assert snap_to_range(-3.0, -2.0, 2.0, 0.1) == -2.0
        assert snap_to_range(math.inf, 0.01, 20.0, 0.01) == 20.0
        assert snap_to_range(1234, 1000, 1_000_000, 100) == 1200

    def test_preset_round_trip(self, tmp_path):
        path = tmp_path / "preset.json"
        params = GalaxyParameters(count=1_234, spin=-0.7, inward_color="#112233",
                                  seed=9)
        save_parameters(params, str(path))
        assert json.loads(path.read_text())["count"] == 1_234
        assert load_parameters(str(path)) == params

    def test_preset_rejects_unknown_keys(self, tmp_path):
        path = tmp_path / "preset.json"
        path.write_text(json.dumps({"count": 100, "branch": 3}))
        with pytest.raises(ValueError, match="branch"):
            load_parameters(str(path))

    def test_preset_whole_number_floats_become_ints(self, tmp_path):
        path = tmp_path / "preset.json"
        path.write_text(json.dumps({"count": 3000.0, "branch_count": 3.0, "seed": 7.0}))
        params = load_parameters(str(path))
        assert params.branch_count == 3 and isinstance(params.branch_count, int)
        assert isinstance(params.count, int) and isinstance(params.seed, int)
        params.validate()
        handle = GalaxyGenerator(PointCloudScene()).generate(params)
        assert run_checks(handle, verbose=False)["branches"]

    def test_preset_fractional_branch_count_is_rejected(self, tmp_path):
        path = tmp_path / "preset.json"
        path.write_text(json.dumps({"branch_count": 2.5}))
        with pytest.raises(ValueError, match="branch_count"):
            load_parameters(str(path)).validate()


class TestChecks:
    def test_checks_pass_for_generated_galaxy(self, generator, small_params, capsys):
        results = run_checks(generator.generate(small_params))
        assert results == {"count": True, "radius": True, "color": True,
                           "scatter": True, "branches": True}
        assert "ACCEPTANCE TESTS" in capsys.readouterr().out

    def test_checks_are_silent_when_not_verbose(self, generator, capsys):
        run_checks(generator.generate(GalaxyParameters(count=30)), verbose=False)
        assert capsys.readouterr().out == ""

    def test_checks_flag_wrong_count(self, generator):
        handle = generator.generate(GalaxyParameters(count=30))
        handle.params.count = 31
        assert run_checks(handle, verbose=False)["count"] is False

    def test_verbose_generator_prints_progress(self, scene, capsys):
        GalaxyGenerator(scene, verbose=True).generate(GalaxyParameters(count=30))
        out = capsys.readouterr().out
        assert "Generating galaxy" in out
        assert "30 particles on 3 arms" in out

    def test_headless_scene_is_default_collaborator(self):
        scene = PointCloudScene()
        assert scene.handles == [] and scene.release_count == 0
