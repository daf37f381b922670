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
Spreads the Lagrangian force density onto the Eulerian grid.

This is the structure-to-fluid half of the Immersed Boundary Method. The force
density `F(s)` of the structure is transferred to the fluid as

    `f(x) = ∫ F(s) δ(x - X(s)) ds  ≈  ∑_k F_k δ_h(x - X_k) ds`

with the separable discrete delta function `δ_h(x, y) = δ_h(x) δ_h(y)`.

For each Lagrangian point the 1D kernel is non-zero on only `supp` nodes per
axis, so the transfer is described by two sparse `Nb x N` weight operators,
`Dx` (`Nb x Nx`) and `Dy` (`Nb x Ny`):

    `Fx_grid = Dx^T diag(fx ds) Dy`

`spreading_operators` builds these matrices explicitly with `scipy.sparse`.
`spread_force` applies the same operator without materializing it, as a
scatter-add of the `supp x supp` block of every point onto the grid.

Because every built-in kernel is a discrete partition of unity, spreading
conserves force: `∑ Fx_grid dx dy == ∑ fx ds` up to round-off.

The module also hosts the top-level entry point, `calc_IBM_force`, that the
fluid solver calls once per timestep.
"""

import dataclasses
import logging
from typing import Callable, Optional, Tuple

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import numpy as np
import scipy.sparse

from jax_ibforce.base import grids
from jax_ibforce.base.convolution_functions import DeltaKernel
from jax_ibforce.base.convolution_functions import check_support
from jax_ibforce.base.convolution_functions import delta_kernel
from jax_ibforce.base.convolution_functions import peskin_4pt
from jax_ibforce.base.errors import DomainError
from jax_ibforce.base.errors import IBForceError
from jax_ibforce.base.index_mapping import give_nonzero_delta_indices
from jax_ibforce.structure.aggregate import LagrangianForces
from jax_ibforce.structure.aggregate import calc_lagrangian_forces
from jax_ibforce.structure.targets import MassForces

logger = logging.getLogger(__name__)


def delta_weights(coords, n: int, h: float, supp: int,
                  kernel: DeltaKernel = peskin_4pt, periodic: bool = True,
                  lower: float = 0.0, offset: float = 0.0,
                  axis_name: str = 'x') -> Tuple[jax.Array, jax.Array]:
  """
  Node indices and 1D delta weights of every point along one axis.

  Returns:
    A tuple `(indices, weights)` of `(Nb, supp)` arrays. The weights of one
    point sum to `1 / h`.
  """
  check_support(kernel, supp)
  indices, r = give_nonzero_delta_indices(
      coords, n, h, supp, periodic=periodic, lower=lower, offset=offset,
      axis_name=axis_name)
  return indices, delta_kernel(r, h, kernel, supp)


def _axis_weights(points, descriptor, kernel):
  """The `(indices, weights)` pairs of both axes."""
  (x_lower, _), (y_lower, _) = descriptor.grid.domain
  x_window = delta_weights(points.x, descriptor.nx, descriptor.dx,
                           descriptor.supp, kernel, descriptor.periodic[0],
                           x_lower, descriptor.offset[0], 'x')
  y_window = delta_weights(points.y, descriptor.ny, descriptor.dy,
                           descriptor.supp, kernel, descriptor.periodic[1],
                           y_lower, descriptor.offset[1], 'y')
  return x_window, y_window


def spreading_operators(points, descriptor, kernel: DeltaKernel = peskin_4pt
                        ) -> Tuple[scipy.sparse.csr_matrix, scipy.sparse.csr_matrix]:
  """
  Builds the explicit sparse delta operators `Dx` (`Nb x Nx`) and `Dy` (`Nb x Ny`).

  Row `k` of `Dx` holds the x-weights of point `k` on the nodes of its
  support window. Duplicate entries, which only arise when the window wraps
  onto itself, are summed.
  """
  (ix, wx), (iy, wy) = _axis_weights(points, descriptor, kernel)
  rows = np.repeat(np.arange(points.num_points), descriptor.supp)

  def to_csr(indices, weights, n):
    return scipy.sparse.csr_matrix(
        (np.asarray(weights).ravel(), (rows, np.asarray(indices).ravel())),
        shape=(points.num_points, n))

  return to_csr(ix, wx, descriptor.nx), to_csr(iy, wy, descriptor.ny)


def spread_force(fx, fy, points, descriptor, kernel: DeltaKernel = peskin_4pt
                 ) -> Tuple[jax.Array, jax.Array]:
  """
  Spreads a Lagrangian force density onto the Eulerian grid.

  Args:
    fx, fy: Force density per Lagrangian point, shape `(Nb,)`.
    points: `LagrangianPoints` with the current positions.
    descriptor: `GridDescriptor`.
    kernel: The delta kernel; its support must equal `descriptor.supp`.

  Returns:
    A tuple `(Fx, Fy)` of arrays shaped `(Nx, Ny)`.
  """
  (ix, wx), (iy, wy) = _axis_weights(points, descriptor, kernel)
  supp = descriptor.supp

  # The 2D kernel of point k on its supp x supp block is wx[k, i] * wy[k, j].
  weights = wx[:, :, None] * wy[:, None, :] * descriptor.ds
  rows = jnp.broadcast_to(ix[:, :, None], weights.shape)
  cols = jnp.broadcast_to(iy[:, None, :], weights.shape)

  def scatter(f):
    values = jnp.asarray(f)[:, None, None] * weights
    field = jnp.zeros(descriptor.grid.shape, dtype=values.dtype)
    return field.at[rows, cols].add(values)

  logger.debug('spreading %d points with a %dx%d stencil', points.num_points,
               supp, supp)
  return scatter(fx), scatter(fy)


def total_eulerian_force(field, descriptor) -> jax.Array:
  """Integral of a spread force field over the domain, `∑ F dx dy`."""
  data = field.data if isinstance(field, grids.GridArray) else field
  return jnp.sum(data) * descriptor.dx * descriptor.dy


def superpose_forces(*forces: grids.GridArrayVector) -> grids.GridArrayVector:
  """
  Sums several `(Fx, Fy)` force fields component by component.

  Used when more than one structure, or an external body force, acts on the
  same fluid. The fields must share their grid and offset.

  Raises:
    InconsistentOffsetError, InconsistentGridError: If the fields live at
      different locations.
  """
  if not forces:
    raise ValueError('superpose_forces needs at least one force field')
  total = forces[0]
  for force in forces[1:]:
    if len(force) != len(total):
      raise ValueError(f'cannot add a {len(force)}-component force to a '
                       f'{len(total)}-component force')
    total = tuple(a + b for a, b in zip(total, force))
  return total


def total_lagrangian_force(f, descriptor) -> jax.Array:
  """Integral of a force density along the structure, `∑ f ds`."""
  return jnp.sum(f) * descriptor.ds


@register_pytree_node_class
@dataclasses.dataclass
class IBMForceResult:
  """
  Output of one force evaluation.

  Attributes:
    force: The `(Fx, Fy)` Eulerian force field as `GridArray`s.
    mass_forces: Raw mass tether forces, empty when there are no masses.
    lagrangian_forces: The combined per-point force density and its parts.
  """
  force: grids.GridArrayVector
  mass_forces: MassForces
  lagrangian_forces: LagrangianForces

  def tree_flatten(self):
    return (self.force, self.mass_forces, self.lagrangian_forces), None

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children)


def _check_consistency(points, descriptor, tables, kernel):
  check_support(kernel, descriptor.supp)
  if points.num_points != descriptor.num_points:
    raise DomainError(
        f'descriptor expects {descriptor.num_points} points, got {points.num_points}')
  for kind, table in tables.tables():
    if len(table) and table.num_points != descriptor.num_points:
      raise DomainError(
          f'{kind.value} table was validated against {table.num_points} points, '
          f'but the structure has {descriptor.num_points}', element=table.element)


def calc_IBM_force(time: float, dt: float, points, descriptor, flags, tables,
                   kernel: DeltaKernel = peskin_4pt,
                   muscle_activation: Optional[Callable] = None,
                   hill_activation: Optional[Callable] = None) -> IBMForceResult:
  """
  Top-level entry point: computes the IB forcing term for the fluid solver.

  Args:
    time: Current simulation time.
    dt: Timestep; the previous positions in `points` are `dt` old.
    points: `LagrangianPoints` with current and previous positions.
    descriptor: `GridDescriptor` of the current timestep.
    flags: `ModelFlags` selecting the element kinds.
    tables: `StructureTables`.
    kernel: Delta kernel; its support must equal `descriptor.supp`.
    muscle_activation: Activation policy of the length-tension/force-velocity
      muscles.
    hill_activation: Activation policy of the three-element Hill muscles.

  Returns:
    An `IBMForceResult`.

  Raises:
    DegenerateGeometryError, OutOfDomainError, DomainError: The computation
      is aborted; no partially computed force is returned.
  """
  try:
    _check_consistency(points, descriptor, tables, kernel)
    lagrangian = calc_lagrangian_forces(
        points, tables, flags, dt=dt, time=time,
        muscle_activation=muscle_activation, hill_activation=hill_activation)
    fx_grid, fy_grid = spread_force(lagrangian.fx, lagrangian.fy, points,
                                    descriptor, kernel)
  except IBForceError as err:
    logger.error('force computation failed at t=%g: %s', time, err)
    raise

  offset = descriptor.offset
  force = (grids.GridArray(fx_grid, offset, descriptor.grid),
           grids.GridArray(fy_grid, offset, descriptor.grid))
  if logger.isEnabledFor(logging.DEBUG):
    logger.debug('t=%g total spread force (%g, %g)', time,
                 float(total_eulerian_force(fx_grid, descriptor)),
                 float(total_eulerian_force(fy_grid, descriptor)))
  return IBMForceResult(force, lagrangian.mass_forces, lagrangian)
