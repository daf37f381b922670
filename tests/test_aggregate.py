import itertools

import jax.numpy as jnp
import numpy as np

from jax_ibforce.base import structure_class as sc
from jax_ibforce.structure import aggregate

DT = 0.01


def test_all_kinds_sum_to_total(ring_points, ring_tables):
  forces = aggregate.calc_lagrangian_forces(
      ring_points, ring_tables, sc.ModelFlags.all(), dt=DT, time=0.2)
  assert set(forces.contributions) == set(sc.ElementKind)
  fx = sum(np.asarray(part[0]) for part in forces.contributions.values())
  fy = sum(np.asarray(part[1]) for part in forces.contributions.values())
  np.testing.assert_allclose(forces.fx, fx, rtol=1e-13, atol=1e-13)
  np.testing.assert_allclose(forces.fy, fy, rtol=1e-13, atol=1e-13)


def test_toggle_independence(ring_points, ring_tables):
  full = aggregate.calc_lagrangian_forces(
      ring_points, ring_tables, sc.ModelFlags.all(), dt=DT, time=0.2)
  kinds = list(sc.ElementKind)
  for size in (1, 2, 3):
    for subset in itertools.combinations(kinds, size):
      partial = aggregate.calc_lagrangian_forces(
          ring_points, ring_tables, sc.ModelFlags.from_kinds(subset), dt=DT, time=0.2)
      assert set(partial.contributions) == set(subset)
      for kind in subset:
        np.testing.assert_array_equal(partial.contributions[kind][0],
                                      full.contributions[kind][0])
        np.testing.assert_array_equal(partial.contributions[kind][1],
                                      full.contributions[kind][1])
      if size == 1:
        kind, = subset
        np.testing.assert_array_equal(partial.fx, full.contributions[kind][0])
        np.testing.assert_array_equal(partial.fy, full.contributions[kind][1])


def test_disabled_kinds_are_not_evaluated():
  # The spring is degenerate, but springs are switched off.
  points = sc.LagrangianPoints.from_positions(jnp.array([[0.5, 0.5], [0.5, 0.5]]))
  tables = sc.StructureTables(
      springs=sc.SpringTable.from_records([sc.Spring(1, 2, 1.0, 1.0)], 2),
      targets=sc.TargetTable.from_records([sc.Target(1, 1.0, 0.5, 2.0)], 2))
  forces = aggregate.calc_lagrangian_forces(
      points, tables, sc.ModelFlags(targets=True))
  np.testing.assert_allclose(forces.fx, [1.0, 0.0])
  np.testing.assert_allclose(forces.fy, [0.0, 0.0])


def test_no_kinds_enabled_gives_zero(ring_points, ring_tables):
  forces = aggregate.calc_lagrangian_forces(ring_points, ring_tables, sc.ModelFlags())
  np.testing.assert_array_equal(forces.fx, 0.0)
  np.testing.assert_array_equal(forces.fy, 0.0)
  assert forces.contributions == {}
  assert len(forces.mass_forces) == 0


def test_mass_side_channel_only_when_enabled(ring_points, ring_tables):
  on = aggregate.calc_lagrangian_forces(
      ring_points, ring_tables, sc.ModelFlags(masses=True))
  off = aggregate.calc_lagrangian_forces(
      ring_points, ring_tables, sc.ModelFlags(springs=True))
  assert len(on.mass_forces) == 1
  assert len(off.mass_forces) == 0
  np.testing.assert_array_equal(on.fx[2], on.mass_forces.fx[0])
  np.testing.assert_array_equal(on.fy[2], on.mass_forces.fy[0])
