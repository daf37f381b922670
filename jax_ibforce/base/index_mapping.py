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
Maps Lagrangian coordinates to the Eulerian grid indices under the kernel.

For a point at coordinate `x` on an axis with `n` nodes at
`x_i = lower + (i + offset) * h`, the delta kernel of support `supp` is
non-zero on at most `supp` consecutive nodes. With `s = (x - lower) / h - offset`
and `i0 = floor(s)` (the node at or to the left of the point), the window is

    i0 - supp/2 + 1, ..., i0 + supp/2

so the point always lies between the two middle nodes of its window.

Offsets are computed from the *unwrapped* window indices, before any modulo is
applied. On a periodic axis this makes the seam invisible: a point just left
of `upper` and a point just right of `lower` get the same kernel shape, and a
point that has drifted outside `[lower, upper)` is simply wrapped back in.
"""

from typing import Tuple

import jax
import jax.numpy as jnp
import numpy as np

from jax_ibforce.base.errors import OutOfDomainError


def _window_units(coords, h, supp, lower, offset):
  """Unwrapped window indices and node-minus-point offsets in grid units."""
  coords = jnp.asarray(coords)
  stencil = jnp.arange(1 - supp // 2, supp // 2 + 1)

  def window_1d(x):
    s = (x - lower) / h - offset
    i0 = jnp.floor(s)
    nodes = i0 + stencil
    return nodes.astype(jnp.int32), nodes - s

  return jax.vmap(window_1d)(coords)

def support_window(coords, n: int, h: float, supp: int, lower: float = 0.0,
                   offset: float = 0.0) -> Tuple[jax.Array, jax.Array]:
  """
  Computes the unwrapped index window and node offsets for every point.

  Args:
    coords: 1D array of Lagrangian coordinates along one axis, shape `(Nb,)`.
    n: Number of Eulerian nodes along the axis.
    h: Grid spacing along the axis.
    supp: Kernel support width (even).
    lower: Lower bound of the physical domain along the axis.
    offset: Node offset within a cell along the axis.

  Returns:
    A tuple `(indices, r)` of arrays shaped `(Nb, supp)`: the unwrapped
    integer node indices (may lie outside `[0, n)`) and the signed physical
    distances `x_node - x_point`.
  """
  del n  # The unwrapped window does not depend on the number of nodes.
  indices, units = _window_units(coords, h, supp, lower, offset)
  return indices, units * h

def give_nonzero_delta_indices(coords, n: int, h: float, supp: int,
                               periodic: bool = True, lower: float = 0.0,
                               offset: float = 0.0, axis_name: str = 'x'):
  """
  Returns the Eulerian node indices inside the kernel support of every point.

  Args:
    coords: 1D array of Lagrangian coordinates along one axis, shape `(Nb,)`.
    n: Number of Eulerian nodes along the axis.
    h: Grid spacing along the axis.
    supp: Kernel support width.
    periodic: Whether the axis wraps. If it does not, every node on which the
      kernel of a point is non-zero must lie in `[0, n)`.
    lower: Lower bound of the physical domain along the axis.
    offset: Node offset within a cell along the axis.
    axis_name: Used in error messages only.

  Returns:
    A tuple `(indices, r)` shaped `(Nb, supp)`: 0-based node indices, wrapped
    modulo `n` on a periodic axis, and the node-minus-point offsets `r` to
    feed into the delta kernel.

  Raises:
    OutOfDomainError: If a coordinate is not finite, or if on a non-periodic
      axis the kernel of a point reaches past the last node.
  """
  indices, units = _window_units(coords, h, supp, lower, offset)
  # Validation needs concrete values, so it runs on the host.
  coords_np = np.asarray(coords)
  if coords_np.size and not np.all(np.isfinite(coords_np)):
    bad = int(np.flatnonzero(~np.isfinite(coords_np))[0])
    raise OutOfDomainError(
        f'{axis_name}-coordinate is not finite: {coords_np[bad]}',
        element='point', index=bad + 1)
  if periodic:
    return jnp.mod(indices, n), units * h
  indices_np = np.asarray(indices)
  outside = (indices_np < 0) | (indices_np >= n)
  # A point exactly on a node has one slot at |r| = supp / 2, where every
  # kernel is zero; that slot may hang over the edge.
  reached = outside & (np.abs(np.asarray(units)) < supp / 2)
  if reached.any():
    bad = int(np.flatnonzero(reached.any(axis=1))[0])
    raise OutOfDomainError(
        f'{supp}-cell support window at {axis_name}={coords_np[bad]} does not '
        f'fit on the non-periodic {axis_name}-axis with {n} nodes',
        element='point', index=bad + 1)
  # Park the zero-weight overhang on the nearest node, far outside the kernel.
  units = jnp.where(outside, float(supp), units)
  return jnp.clip(indices, 0, n - 1), units * h
