# Copyright 2021 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Hookean spring force densities.

Each spring pulls its master and slave points together (or pushes them apart)
with magnitude `k (d - L)`, where `d` is the current separation and `L` the
resting length. The force on the master is along the unit vector from master
to slave, and the slave receives the exact negation.
"""

import jax.numpy as jnp
import numpy as np

from jax_ibforce.base.errors import DegenerateGeometryError


def check_nonzero_lengths(lengths, element: str) -> None:
  """Raises `DegenerateGeometryError` for the first zero-length segment.

  Args:
    lengths: Segment lengths, one per table row.
    element: Element kind, used in the error.
  """
  lengths = np.asarray(lengths)
  zero = lengths == 0
  if zero.any():
    row = int(np.flatnonzero(zero)[0])
    raise DegenerateGeometryError(
        'zero length between master and slave, force direction is undefined',
        element=element, index=row + 1)


def spring_force_densities(points, table):
  """
  Computes the force density of every spring on every Lagrangian point.

  Args:
    points: `LagrangianPoints` with the current positions.
    table: `SpringTable`.

  Returns:
    A tuple `(fx, fy)` of arrays of length `Nb`. Points attached to several
    springs accumulate all of them.

  Raises:
    DegenerateGeometryError: If a spring has zero length.
  """
  fx = jnp.zeros_like(points.x)
  fy = jnp.zeros_like(points.y)
  if len(table) == 0:
    return fx, fy

  master, slave = table.master, table.slave
  dx = points.x[slave] - points.x[master]
  dy = points.y[slave] - points.y[master]
  length = jnp.sqrt(dx**2 + dy**2)
  check_nonzero_lengths(length, 'spring')

  # k (d - L) times the unit vector (dx, dy) / d.
  scale = table.stiffness * (length - table.resting_length) / length
  sfx, sfy = scale * dx, scale * dy

  fx = fx.at[master].add(sfx).at[slave].add(-sfx)
  fy = fy.at[master].add(sfy).at[slave].add(-sfy)
  return fx, fy
