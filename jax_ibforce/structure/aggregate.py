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
Sums the force densities of all enabled element kinds.

The generators are independent of each other: each reads the shared positions
and returns a full-length `(fx, fy)` contribution. This module runs the
enabled ones, keeps every contribution for diagnostics, and reduces them into
the total Lagrangian force density with `tree_math` vector arithmetic.
"""

import dataclasses
import logging
from typing import Callable, Dict, Optional, Tuple

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import tree_math

from jax_ibforce.base.structure_class import ElementKind
from jax_ibforce.structure import activation
from jax_ibforce.structure import beams
from jax_ibforce.structure import muscles
from jax_ibforce.structure import springs
from jax_ibforce.structure import targets

logger = logging.getLogger(__name__)

ForcePair = Tuple[jax.Array, jax.Array]


@register_pytree_node_class
@dataclasses.dataclass
class LagrangianForces:
  """
  The total Lagrangian force density and its parts.

  Attributes:
    fx, fy: Total force density per Lagrangian point.
    mass_forces: Raw mass tether forces for the external mass integrator;
      empty when masses are disabled.
    contributions: `(fx, fy)` of every element kind that was computed.
  """
  fx: jax.Array
  fy: jax.Array
  mass_forces: targets.MassForces
  contributions: Dict[ElementKind, ForcePair]

  def tree_flatten(self):
    kinds = tuple(self.contributions)
    children = (self.fx, self.fy, self.mass_forces,
                tuple(self.contributions[k] for k in kinds))
    return children, kinds

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    fx, fy, mass_forces, parts = children
    return cls(fx, fy, mass_forces, dict(zip(aux_data, parts)))


def calc_lagrangian_forces(points, tables, flags, dt: Optional[float] = None,
                           time: float = 0.0,
                           muscle_activation: Optional[Callable] = None,
                           hill_activation: Optional[Callable] = None
                           ) -> LagrangianForces:
  """
  Computes and sums the force densities of the enabled element kinds.

  Disabled kinds are not evaluated at all and contribute nothing.

  Args:
    points: `LagrangianPoints`.
    tables: `StructureTables`.
    flags: `ModelFlags` selecting the element kinds.
    dt: Timestep, needed by muscles for the shortening speed.
    time: Current simulation time, forwarded to the activation policies.
    muscle_activation: Policy for `ElementKind.MUSCLES`.
    hill_activation: Policy for `ElementKind.HILL_MUSCLES`.

  Returns:
    A `LagrangianForces` record.
  """
  if hill_activation is None:
    hill_activation = activation.hill_three_element()

  generators = {
      ElementKind.SPRINGS: lambda: springs.spring_force_densities(points, tables.springs),
      ElementKind.BEAMS: lambda: beams.beam_force_densities(points, tables.beams),
      ElementKind.TARGETS: lambda: targets.target_force_densities(points, tables.targets),
      ElementKind.MUSCLES: lambda: muscles.muscle_force_densities(
          points, tables.muscles, dt, time, muscle_activation, element='muscle'),
      ElementKind.HILL_MUSCLES: lambda: muscles.muscle_force_densities(
          points, tables.hill_muscles, dt, time, hill_activation,
          element='hill_muscle'),
  }

  contributions = {}
  mass_forces = targets.MassForces.empty()
  for kind in ElementKind:
    if not flags.is_enabled(kind):
      continue
    if kind is ElementKind.MASSES:
      mfx, mfy, mass_forces = targets.mass_force_densities(points, tables.masses)
      contributions[kind] = (mfx, mfy)
    else:
      contributions[kind] = generators[kind]()

  total = tree_math.Vector((jnp.zeros_like(points.x), jnp.zeros_like(points.y)))
  for part in contributions.values():
    total = total + tree_math.Vector(part)
  fx, fy = total.tree

  logger.debug('lagrangian force from %s on %d points',
               sorted(kind.value for kind in contributions), points.num_points)
  return LagrangianForces(fx, fy, mass_forces, contributions)
