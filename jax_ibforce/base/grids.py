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
Core data structures for the Eulerian grid and the fields defined on it.

The key concepts are:

- `Grid`: Describes the physical size, shape, and resolution of the Eulerian
  domain.
- `GridArray`: A container that holds a JAX array of data and annotates it with
  its physical location (offset) on a `Grid`. The spread force fields are
  returned to the fluid solver as `GridArray`s.
- `GridDescriptor`: The immutable per-timestep record handed to the force
  computation. It bundles a `Grid` with everything else the spreading step
  needs to know: the kernel support width, the number of Lagrangian points,
  their arclength spacing `ds`, and which axes are periodic.
"""
# This import allows a class to use its own name in type hints before it is fully defined.
from __future__ import annotations

import dataclasses
import numbers
import operator
from typing import Optional, Sequence, Tuple, Union

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import numpy as np

from jax_ibforce.base.errors import DomainError

# --- Type Aliases ---
Array = Union[np.ndarray, jax.Array]


@register_pytree_node_class
@dataclasses.dataclass
class GridArray(np.lib.mixins.NDArrayOperatorsMixin):
  """
  A data array associated with a specific location (offset) on a grid.

  By registering this class as a JAX PyTree and using NumPy's
  `NDArrayOperatorsMixin`, standard arithmetic (`a + b`, `2 * a`) works
  directly on `GridArray` objects and JAX traces through the underlying data.

  Attributes:
    data: The raw numerical data as a JAX or NumPy array.
    offset: A tuple describing the location of the data points within a grid
      cell. `(0., 0.)` places the data on the cell nodes, `(0.5, 0.5)` on the
      cell centers.
    grid: The `Grid` object that this data is defined on.
  """
  data: Array
  offset: Tuple[float, ...]
  grid: Grid

  def tree_flatten(self):
    """The `data` array is the traced child; offset and grid are static."""
    children = (self.data,)
    aux_data = (self.offset, self.grid)
    return children, aux_data

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children, *aux_data)

  @property
  def dtype(self):
    return self.data.dtype

  @property
  def shape(self) -> Tuple[int, ...]:
    return self.data.shape

  # Tracers are `jax.Array` instances, so this also covers traced values.
  _HANDLED_TYPES = (numbers.Number, np.ndarray, jax.Array)

  def __array_ufunc__(self, ufunc, method, *inputs, **kwargs):
    """
    Defines how NumPy universal functions (like `+`, `*`, `sin`, etc.) operate
    on `GridArray` objects.
    """
    for x in inputs:
      if not isinstance(x, self._HANDLED_TYPES + (GridArray,)):
        return NotImplemented
    if method != '__call__':
      return NotImplemented
    try:
      # Get the JAX equivalent of the NumPy ufunc.
      func = getattr(jnp, ufunc.__name__)
    except AttributeError:
      return NotImplemented

    arrays = [x.data if isinstance(x, GridArray) else x for x in inputs]
    result = func(*arrays)

    # An operation on several GridArrays is only meaningful if they live at
    # the same place on the same grid.
    grid_array_inputs = [x for x in inputs if isinstance(x, GridArray)]
    offset = consistent_offset(*grid_array_inputs)
    grid = consistent_grid(*grid_array_inputs)
    if isinstance(result, tuple):
      return tuple(GridArray(r, offset, grid) for r in result)
    else:
      return GridArray(result, offset, grid)


# A tuple of GridArrays, e.g. the (Fx, Fy) force field.
GridArrayVector = Tuple[GridArray, ...]


# --- Custom Exception Classes ---

class InconsistentOffsetError(Exception):
  """Raised when combining arrays that have different offsets."""


def consistent_offset(*arrays: GridArray) -> Tuple[float, ...]:
  """Checks that all input arrays share one offset and returns it."""
  if not arrays: return ()
  offsets = {array.offset for array in arrays}
  if len(offsets) != 1:
    raise InconsistentOffsetError(
        f'arrays do not have a unique offset: {offsets}')
  offset, = offsets
  return offset


class InconsistentGridError(Exception):
  """Raised when combining arrays defined on different grids."""


def consistent_grid(*arrays: GridArray) -> Optional[Grid]:
  """Checks that all input arrays are defined on the same grid and returns it."""
  if not arrays: return None
  grids = {array.grid for array in arrays}
  if len(grids) != 1:
    raise InconsistentGridError(f'arrays do not have a unique grid: {grids}')
  grid, = grids
  return grid


@dataclasses.dataclass(init=False, frozen=True)
class Grid:
  """
  Describes the size, shape, and physical domain of the Eulerian grid.

  The grid is defined by providing its `shape` (number of cells) and either its
  physical `domain` or its cell `step` size.

  Attributes:
    shape: A tuple of integers giving the number of grid cells in each dimension.
    step: A tuple of floats giving the physical size (e.g., `dx`) of each
      grid cell in each dimension.
    domain: A tuple of pairs `((x_min, x_max), (y_min, y_max))`
      defining the physical boundaries of the simulation domain.
  """
  shape: Tuple[int, ...]
  step: Tuple[float, ...]
  domain: Tuple[Tuple[float, float], ...]

  def __init__(
      self,
      shape: Sequence[int],
      step: Optional[Union[float, Sequence[float]]] = None,
      domain: Optional[Union[float, Sequence[Tuple[float, float]]]] = None,
  ):
    """
    Constructs a grid object. You must provide `shape` and EITHER `step` OR `domain`.
    """
    shape = tuple(operator.index(s) for s in shape)
    # Use object.__setattr__ because the dataclass is frozen.
    object.__setattr__(self, 'shape', shape)

    if step is not None and domain is not None:
      raise TypeError('Cannot provide both `step` and `domain` to Grid constructor')
    elif domain is not None:
      if isinstance(domain, (int, float)):  # e.g., domain=1.0 for a 2D grid
        domain = ((0, domain),) * len(shape)
      else:
        if len(domain) != self.ndim:
          raise ValueError(f'length of domain does not match ndim: {len(domain)} vs {self.ndim}')
        for bounds in domain:
          if len(bounds) != 2:
            raise ValueError(f'domain must be a sequence of (lower, upper) pairs: {domain}')
      domain = tuple((float(lower), float(upper)) for lower, upper in domain)
    else:
      if step is None: step = 1.0
      if isinstance(step, numbers.Number):
        step = (step,) * self.ndim
      elif len(step) != self.ndim:
        raise ValueError(f'length of step does not match ndim: {len(step)} vs {self.ndim}')
      domain = tuple(
          (0.0, float(step_ * size)) for step_, size in zip(step, shape))

    object.__setattr__(self, 'domain', domain)

    # The step size is always re-derived from the final domain and shape so
    # that dx = Lx / Nx holds exactly.
    step = tuple(
        (upper - lower) / size for (lower, upper), size in zip(domain, shape))
    object.__setattr__(self, 'step', step)

  @property
  def ndim(self) -> int:
    return len(self.shape)

  @property
  def cell_center(self) -> Tuple[float, ...]:
    return self.ndim * (0.5,)

  def axes(self, offset: Optional[Sequence[float]] = None) -> Tuple[Array, ...]:
    """
    Returns a tuple of 1D arrays, where each array contains the physical
    coordinates of the grid points along one axis for a given offset.
    """
    if offset is None: offset = self.cell_center
    if len(offset) != self.ndim:
      raise ValueError(f'unexpected offset length: {len(offset)} vs {self.ndim}')
    # Formula for coordinates: x_i = x_lower + (i + offset) * dx
    return tuple(lower + (jnp.arange(length) + offset_i) * step
                 for (lower, _), offset_i, length, step in zip(
                     self.domain, offset, self.shape, self.step))

  def mesh(self, offset: Optional[Sequence[float]] = None) -> Tuple[Array, ...]:
    """
    Returns a tuple of N-D arrays containing the grid coordinates at every point.
    This is equivalent to `jnp.meshgrid(..., indexing='ij')`.
    """
    axes = self.axes(offset)
    return tuple(jnp.meshgrid(*axes, indexing='ij'))


@dataclasses.dataclass(frozen=True)
class GridDescriptor:
  """
  Everything the force computation needs to know about the discretization.

  A descriptor is built once per timestep (or once per run, when nothing about
  the discretization changes) and is read-only for the duration of a call.

  Attributes:
    grid: The 2D Eulerian `Grid`.
    supp: Support width of the delta kernel, in grid cells. Must be even.
    num_points: Number of Lagrangian points, `Nb`.
    ds: Lagrangian arclength spacing. Spread forces are scaled by it.
    periodic: Per-axis flag. Support windows wrap on periodic axes and must
      fit inside the grid on the others.
    offset: Location of the Eulerian force nodes within a cell. The default
      `(0., 0.)` puts them on the cell corners, `x_i = x_lower + i * dx`.
  """
  grid: Grid
  supp: int
  num_points: int
  ds: float
  periodic: Tuple[bool, bool] = (True, True)
  offset: Tuple[float, float] = (0.0, 0.0)

  def __post_init__(self):
    if self.grid.ndim != 2:
      raise DomainError(f'expected a 2D grid, got ndim={self.grid.ndim}')
    if isinstance(self.supp, bool) or not isinstance(self.supp, numbers.Integral):
      raise DomainError(f'support width must be an integer, got {self.supp!r}')
    if self.supp < 2 or self.supp % 2:
      raise DomainError(f'support width must be even and >= 2, got {self.supp}')
    if any(self.supp > n for n in self.grid.shape):
      raise DomainError(
          f'support width {self.supp} exceeds grid shape {self.grid.shape}')
    if self.num_points < 0:
      raise DomainError(f'number of points must be >= 0, got {self.num_points}')
    if not self.ds > 0:
      raise DomainError(f'ds must be positive, got {self.ds}')
    if len(self.periodic) != 2 or len(self.offset) != 2:
      raise DomainError('periodic and offset must have one entry per axis')
    object.__setattr__(self, 'periodic', tuple(bool(p) for p in self.periodic))
    object.__setattr__(self, 'offset', tuple(float(o) for o in self.offset))

  @classmethod
  def uniform(cls, nx: int, ny: int, lx: float, ly: float, supp: int,
              num_points: int, ds: float,
              periodic: Tuple[bool, bool] = (True, True),
              offset: Tuple[float, float] = (0.0, 0.0)) -> GridDescriptor:
    """Descriptor for the domain `[0, lx) x [0, ly)` with `nx x ny` cells."""
    grid = Grid((nx, ny), domain=((0.0, lx), (0.0, ly)))
    return cls(grid, supp, num_points, ds, periodic, offset)

  @property
  def nx(self) -> int:
    return self.grid.shape[0]

  @property
  def ny(self) -> int:
    return self.grid.shape[1]

  @property
  def lx(self) -> float:
    lower, upper = self.grid.domain[0]
    return upper - lower

  @property
  def ly(self) -> float:
    lower, upper = self.grid.domain[1]
    return upper - lower

  @property
  def dx(self) -> float:
    return self.grid.step[0]

  @property
  def dy(self) -> float:
    return self.grid.step[1]

  def eulerian_coordinates(self) -> Tuple[Array, Array]:
    """The `(X, Y)` coordinate arrays of the force nodes, shaped `(Nx, Ny)`."""
    return self.grid.mesh(self.offset)
