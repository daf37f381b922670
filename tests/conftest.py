"""Shared test configuration and fixtures."""

import jax

# Conservation and partition-of-unity checks are made at double precision.
jax.config.update('jax_enable_x64', True)

import jax.numpy as jnp
import numpy as np
import pytest

from jax_ibforce.base import grids
from jax_ibforce.base import structure_class as sc


@pytest.fixture
def descriptor():
  """32 x 32 periodic unit square with a 4-point kernel and 8 points."""
  return grids.GridDescriptor.uniform(32, 32, 1.0, 1.0, supp=4, num_points=8,
                                      ds=1.0 / 64)


@pytest.fixture
def ring_points():
  """Eight points on a circle of radius 0.2, previous positions slightly larger."""
  theta = np.linspace(0.0, 2 * np.pi, 8, endpoint=False)
  current = np.stack([0.5 + 0.2 * np.cos(theta), 0.5 + 0.2 * np.sin(theta)], axis=-1)
  previous = np.stack([0.5 + 0.21 * np.cos(theta), 0.5 + 0.21 * np.sin(theta)], axis=-1)
  return sc.LagrangianPoints.from_positions(jnp.asarray(current), jnp.asarray(previous))


@pytest.fixture
def ring_tables():
  """Every element kind on the eight-point ring."""
  n = 8
  springs = sc.SpringTable.from_records(
      [sc.Spring(i + 1, (i + 1) % n + 1, 10.0, 0.1) for i in range(n)], n)
  beams = sc.BeamTable.from_records(
      [sc.Beam(i + 1, (i + 1) % n + 1, (i + 2) % n + 1, 2.0, 0.0) for i in range(n)], n)
  targets = sc.TargetTable.from_records(
      [sc.Target(1, 0.75, 0.5, 5.0), sc.Target(5, 0.25, 0.5, 5.0)], n)
  masses = sc.MassTable.from_records([sc.Mass(3, 0.5, 0.75, 3.0, 2.0)], n)
  muscles = sc.MuscleTable.from_records(
      [sc.Muscle(2, 6, 0.3, 0.4, 0.25, 4.0, 1.5)], n)
  hill_muscles = sc.MuscleTable.from_records(
      [sc.Muscle(4, 8, 0.3, 0.4, 0.25, 4.0, 1.5)], n)
  return sc.StructureTables(springs=springs, beams=beams, targets=targets,
                            masses=masses, muscles=muscles,
                            hill_muscles=hill_muscles)
