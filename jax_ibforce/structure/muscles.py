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
Hill-type muscle force densities.

A muscle is a contractile element between a master and a slave point. Its
force magnitude comes from an activation policy (see `activation`), evaluated
on the current fiber length, the shortening speed estimated from the previous
timestep, the muscle constants and the simulation time. The force is applied
along the master-to-slave unit vector and paired like a spring, so a positive
force draws the two points together.
"""

import jax.numpy as jnp

from jax_ibforce.structure import activation
from jax_ibforce.structure.springs import check_nonzero_lengths


def muscle_force_densities(points, table, dt, time, muscle_activation=None,
                           element='muscle'):
  """
  Computes the muscle force density on every Lagrangian point.

  Args:
    points: `LagrangianPoints` with current and previous positions.
    table: `MuscleTable`.
    dt: Timestep separating the previous and current positions.
    time: Current simulation time, forwarded to the activation policy.
    muscle_activation: Activation policy. Defaults to
      `activation.length_tension_force_velocity()`.
    element: Element kind used in error messages.

  Returns:
    A tuple `(fx, fy)` of arrays of length `Nb`.

  Raises:
    ValueError: If `dt` is not positive.
    DegenerateGeometryError: If a muscle has zero current length.
  """
  fx = jnp.zeros_like(points.x)
  fy = jnp.zeros_like(points.y)
  if len(table) == 0:
    return fx, fy
  if dt is None or not dt > 0:
    raise ValueError(f'muscles need a positive timestep, got dt={dt}')
  if muscle_activation is None:
    muscle_activation = activation.length_tension_force_velocity()

  master, slave = table.master, table.slave
  dx = points.x[slave] - points.x[master]
  dy = points.y[slave] - points.y[master]
  LF = jnp.sqrt(dx**2 + dy**2)
  check_nonzero_lengths(LF, element)

  dx_prev = points.x_prev[slave] - points.x_prev[master]
  dy_prev = points.y_prev[slave] - points.y_prev[master]
  LF_P = jnp.sqrt(dx_prev**2 + dy_prev**2)
  v = jnp.abs(LF - LF_P) / dt

  master_position = jnp.stack([points.x[master], points.y[master]], axis=-1)
  Fm = muscle_activation(v, LF, table.optimal_length, table.force_scale,
                         table.hill_a, table.hill_b, table.max_force, time,
                         master_position, points.positions())

  mfx = Fm * dx / LF
  mfy = Fm * dy / LF
  fx = fx.at[master].add(mfx).at[slave].add(-mfx)
  fy = fy.at[master].add(mfy).at[slave].add(-mfy)
  return fx, fy
