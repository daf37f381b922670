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
"""Torsional beam force densities."""

import jax.numpy as jnp


def _segments(points, table):
  """Components of the segment vectors 1->2 and 2->3 of every triple."""
  x1, y1 = points.x[table.first], points.y[table.first]
  x2, y2 = points.x[table.middle], points.y[table.middle]
  x3, y3 = points.x[table.last], points.y[table.last]
  return x2 - x1, y2 - y1, x3 - x2, y3 - y2


def beam_curvature(points, table):
  """
  Discrete curvature proxy of every beam triple.

  `C = (x3 - x2)(y2 - y1) - (y3 - y2)(x2 - x1)`, the cross product of the two
  segment vectors. It vanishes for colinear points.
  """
  dx21, dy21, dx32, dy32 = _segments(points, table)
  return dx32 * dy21 - dy32 * dx21


def beam_force_densities(points, table):
  """
  Computes the beam force density on the middle point of every triple.

  The force is `k (C - C_target)` along `(dy21 + dy32, -(dx32 + dx21))`. Only
  the middle point is forced; the end points of a beam are themselves middle
  points of the neighbouring beams of a chain.

  Args:
    points: `LagrangianPoints` with the current positions.
    table: `BeamTable`.

  Returns:
    A tuple `(fx, fy)` of arrays of length `Nb`.
  """
  fx = jnp.zeros_like(points.x)
  fy = jnp.zeros_like(points.y)
  if len(table) == 0:
    return fx, fy

  dx21, dy21, dx32, dy32 = _segments(points, table)
  curvature = dx32 * dy21 - dy32 * dx21
  factor = table.stiffness * (curvature - table.curvature)

  fx = fx.at[table.middle].add(factor * (dy21 + dy32))
  fy = fy.at[table.middle].add(-factor * (dx32 + dx21))
  return fx, fy
