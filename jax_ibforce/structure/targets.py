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
Target and mass point force densities.

Both are penalty tethers, `F = k (anchor - X)`, in the spirit of the penalty
IBM: a massless Lagrangian point is pulled back towards an anchor. Target
anchors are fixed in space. Mass anchors carry inertia and are advanced by an
external point-mass integrator, which needs the raw tether force of every mass
record; `mass_force_densities` returns it as a `MassForces` side channel.
"""

import dataclasses
from typing import List

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import numpy as np

from jax_ibforce.base.structure_class import PointId


def calculate_penalty_force(xp, yp, anchor_x, anchor_y, stiffness):
  """Hooke's law tether `F = k (anchor - X)` towards a set of anchors."""
  force_x = stiffness * (anchor_x - xp)
  force_y = stiffness * (anchor_y - yp)
  return force_x, force_y


def target_force_densities(points, table):
  """
  Computes the target tether force density on every Lagrangian point.

  Args:
    points: `LagrangianPoints` with the current positions.
    table: `TargetTable`.

  Returns:
    A tuple `(fx, fy)` of arrays of length `Nb`.
  """
  fx = jnp.zeros_like(points.x)
  fy = jnp.zeros_like(points.y)
  if len(table) == 0:
    return fx, fy
  tfx, tfy = calculate_penalty_force(
      points.x[table.point], points.y[table.point],
      table.anchor_x, table.anchor_y, table.stiffness)
  return fx.at[table.point].add(tfx), fy.at[table.point].add(tfy)


@register_pytree_node_class
@dataclasses.dataclass
class MassForces:
  """
  Raw tether force of every mass record, for the external mass integrator.

  Attributes:
    point: 0-based offsets of the tethered Lagrangian points.
    fx, fy: Force on the Lagrangian point. The anchor feels the negation.
    mass: Anchor masses, copied from the table.
  """
  point: jax.Array
  fx: jax.Array
  fy: jax.Array
  mass: jax.Array

  def __len__(self):
    return int(np.shape(self.point)[0])

  def point_ids(self) -> List[PointId]:
    return [PointId.from_offset(int(p)) for p in np.asarray(self.point)]

  @classmethod
  def empty(cls) -> 'MassForces':
    return cls(jnp.zeros((0,), dtype=jnp.int32), jnp.zeros((0,)),
               jnp.zeros((0,)), jnp.zeros((0,)))

  def tree_flatten(self):
    return (self.point, self.fx, self.fy, self.mass), None

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children)


def mass_force_densities(points, table):
  """
  Computes the mass tether force density and the raw per-record forces.

  Args:
    points: `LagrangianPoints` with the current positions.
    table: `MassTable`.

  Returns:
    A tuple `(fx, fy, mass_forces)`: density arrays of length `Nb` and the
    `MassForces` side channel with one entry per mass record.
  """
  fx = jnp.zeros_like(points.x)
  fy = jnp.zeros_like(points.y)
  if len(table) == 0:
    return fx, fy, MassForces.empty()
  mfx, mfy = calculate_penalty_force(
      points.x[table.point], points.y[table.point],
      table.anchor_x, table.anchor_y, table.stiffness)
  mass_forces = MassForces(table.point, mfx, mfy, table.mass)
  return fx.at[table.point].add(mfx), fy.at[table.point].add(mfy), mass_forces
