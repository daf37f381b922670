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
Defines the data structures describing the immersed structure.

The structure is a set of Lagrangian points plus one table per structural
element type:

-   **Springs** connect a master and a slave point with a Hookean spring.
-   **Beams** act on point triples and penalize deviation from a target
    discrete curvature.
-   **Targets** tether a point to a fixed anchor.
-   **Masses** tether a point to an anchor that carries inertia; the raw force
    is handed to an external point-mass integrator.
-   **Muscles** connect a master and a slave point with an active,
    Hill-type contractile element.

Points are addressed by `PointId`, an explicit 1-based handle. Records accept
either a `PointId` or a plain positive integer. Tables convert identities to
0-based array offsets once, when they are built, and validate them against the
number of points. No index checks happen while forces are evaluated.

Point sets and tables are registered as **JAX PyTrees** so that they can be
passed through `jax.jit`, `jax.vmap`, and the rest of JAX's transformations.
"""

import dataclasses
import enum
import logging
import math
from typing import Any, ClassVar, Iterable, Mapping, Optional, Sequence, Tuple, Union

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class
import numpy as np

from jax_ibforce.base.errors import DegenerateGeometryError
from jax_ibforce.base.errors import PointIndexError

logger = logging.getLogger(__name__)

Array = Union[np.ndarray, jax.Array]


@dataclasses.dataclass(frozen=True, order=True)
class PointId:
  """Opaque 1-based identity of a Lagrangian point."""
  value: int

  def __post_init__(self):
    value = self.value
    if isinstance(value, PointId):
      value = value.value
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
      raise TypeError(f'point identity must be an integer, got {value!r}')
    if value < 1:
      raise PointIndexError(f'point identities start at 1, got {value}',
                            element='point', index=int(value))
    object.__setattr__(self, 'value', int(value))

  @classmethod
  def from_offset(cls, offset: int) -> 'PointId':
    """The identity of the point stored at 0-based array offset `offset`."""
    return cls(int(offset) + 1)

  @property
  def offset(self) -> int:
    """0-based array offset of this point."""
    return self.value - 1

  def __int__(self):
    return self.value


PointLike = Union[PointId, int]


# --- LAGRANGIAN POINT SET ---
@register_pytree_node_class
@dataclasses.dataclass
class LagrangianPoints:
  """
  Current and previous-timestep positions of the Lagrangian points.

  The previous positions are only used for the velocity-dependent muscle
  force. Positions are owned by the caller; this package never mutates them.
  """
  x: jax.Array
  y: jax.Array
  x_prev: jax.Array
  y_prev: jax.Array

  def __post_init__(self):
    # Force densities accumulate into arrays shaped like the positions, so
    # integer coordinates are promoted here.
    for name in ('x', 'y', 'x_prev', 'y_prev'):
      a = jnp.asarray(getattr(self, name))
      dtype = jnp.promote_types(a.dtype, jnp.result_type(float))
      setattr(self, name, a.astype(dtype))
    shapes = {jnp.shape(a) for a in (self.x, self.y, self.x_prev, self.y_prev)}
    if len(shapes) != 1:
      raise ValueError(f'position arrays must share one shape, got {shapes}')
    shape, = shapes
    if len(shape) != 1:
      raise ValueError(f'position arrays must be 1D, got shape {shape}')

  @classmethod
  def from_positions(cls, positions: Array,
                     previous: Optional[Array] = None) -> 'LagrangianPoints':
    """Builds a point set from `(Nb, 2)` arrays of current and previous positions."""
    positions = jnp.asarray(positions)
    previous = positions if previous is None else jnp.asarray(previous)
    return cls(positions[:, 0], positions[:, 1], previous[:, 0], previous[:, 1])

  @property
  def num_points(self) -> int:
    return int(jnp.shape(self.x)[0])

  def positions(self) -> jax.Array:
    """Current positions as an `(Nb, 2)` array."""
    return jnp.stack([self.x, self.y], axis=-1)

  def tree_flatten(self):
    children = (self.x, self.y, self.x_prev, self.y_prev)
    return children, None

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    # Skip __post_init__: during tracing the children may be placeholders.
    obj = object.__new__(cls)
    obj.x, obj.y, obj.x_prev, obj.y_prev = children
    return obj


# --- ELEMENT RECORDS ---
@dataclasses.dataclass(frozen=True)
class _Record:
  """Common validation for element records."""
  _index_fields: ClassVar[Tuple[str, ...]] = ()
  _nonnegative_fields: ClassVar[Tuple[str, ...]] = ()

  def __post_init__(self):
    for field in dataclasses.fields(self):
      value = getattr(self, field.name)
      if field.name in self._index_fields:
        object.__setattr__(self, field.name, PointId(value))
        continue
      value = float(value)
      if not math.isfinite(value):
        raise ValueError(f'{type(self).__name__}.{field.name} must be finite, got {value}')
      if field.name in self._nonnegative_fields and value < 0:
        raise ValueError(f'{type(self).__name__}.{field.name} must be >= 0, got {value}')
      object.__setattr__(self, field.name, value)


@dataclasses.dataclass(frozen=True)
class Spring(_Record):
  """Hookean spring between `master` and `slave`."""
  master: PointLike
  slave: PointLike
  stiffness: float
  resting_length: float
  _index_fields: ClassVar[Tuple[str, ...]] = ('master', 'slave')
  _nonnegative_fields: ClassVar[Tuple[str, ...]] = ('resting_length',)

  def __post_init__(self):
    super().__post_init__()
    if self.master == self.slave:
      raise DegenerateGeometryError(
          f'spring connects point {self.master.value} to itself', element='spring')


@dataclasses.dataclass(frozen=True)
class Beam(_Record):
  """Bending element on the triple (`first`, `middle`, `last`)."""
  first: PointLike
  middle: PointLike
  last: PointLike
  stiffness: float
  curvature: float
  _index_fields: ClassVar[Tuple[str, ...]] = ('first', 'middle', 'last')


@dataclasses.dataclass(frozen=True)
class Target(_Record):
  """Tether of `point` to the fixed anchor `(anchor_x, anchor_y)`."""
  point: PointLike
  anchor_x: float
  anchor_y: float
  stiffness: float
  _index_fields: ClassVar[Tuple[str, ...]] = ('point',)


@dataclasses.dataclass(frozen=True)
class Mass(_Record):
  """Tether of `point` to a massive anchor; `mass` is used by the external integrator."""
  point: PointLike
  anchor_x: float
  anchor_y: float
  stiffness: float
  mass: float
  _index_fields: ClassVar[Tuple[str, ...]] = ('point',)

  def __post_init__(self):
    super().__post_init__()
    if not self.mass > 0:
      raise ValueError(f'Mass.mass must be positive, got {self.mass}')


@dataclasses.dataclass(frozen=True)
class Muscle(_Record):
  """
  Hill-type muscle between `master` and `slave`.

  `optimal_length` is the fiber length of peak isometric force, `force_scale`
  the width of the length-tension curve, `hill_a` and `hill_b` the constants
  of Hill's force-velocity hyperbola and `max_force` the peak isometric force.
  """
  master: PointLike
  slave: PointLike
  optimal_length: float
  force_scale: float
  hill_a: float
  hill_b: float
  max_force: float
  _index_fields: ClassVar[Tuple[str, ...]] = ('master', 'slave')
  _nonnegative_fields: ClassVar[Tuple[str, ...]] = ('hill_a', 'max_force')

  def __post_init__(self):
    super().__post_init__()
    for name in ('optimal_length', 'force_scale', 'hill_b'):
      if not getattr(self, name) > 0:
        raise ValueError(f'Muscle.{name} must be positive, got {getattr(self, name)}')
    if self.master == self.slave:
      raise DegenerateGeometryError(
          f'muscle connects point {self.master.value} to itself', element='muscle')


# --- ELEMENT TABLES ---
class _ElementTable:
  """
  Column storage for one element type.

  Index columns hold 0-based offsets (int32), parameter columns hold floats.
  `num_points` is the size of the point set the indices were validated
  against; it is static pytree metadata.
  """
  element: ClassVar[str]
  record_type: ClassVar[type]

  def __len__(self):
    return int(np.shape(getattr(self, dataclasses.fields(self)[0].name))[0])

  def tree_flatten(self):
    children = tuple(getattr(self, f.name) for f in dataclasses.fields(self)
                     if f.name != 'num_points')
    return children, self.num_points

  @classmethod
  def tree_unflatten(cls, aux_data, children):
    return cls(*children, num_points=aux_data)

  @classmethod
  def from_records(cls, records: Iterable[Any], num_points: int):
    """
    Builds a table from records, validating every point reference.

    Raises:
      PointIndexError: If a record references a point outside `[1, num_points]`.
        `index` on the error is the 1-based position of the record in the table.
    """
    records = list(records)
    index_fields = cls.record_type._index_fields
    columns = {}
    for field in dataclasses.fields(cls.record_type):
      values = [getattr(r, field.name) for r in records]
      if field.name in index_fields:
        for row, point in enumerate(values):
          if point.value > num_points:
            raise PointIndexError(
                f'{field.name} references point {point.value}, but there are '
                f'only {num_points} points', element=cls.element, index=row + 1)
        columns[field.name] = jnp.asarray(
            np.array([p.offset for p in values], dtype=np.int32))
      else:
        columns[field.name] = jnp.asarray(np.array(values, dtype=float))
    logger.debug('loaded %d %s elements', len(records), cls.element)
    return cls(**columns, num_points=num_points)

  @classmethod
  def from_array(cls, rows: Array, num_points: int):
    """
    Builds a table from positional numeric rows, one element per row.

    Columns follow the field order of the record type; index columns hold
    1-based point identities, as written by geometry files.
    """
    rows = np.asarray(rows, dtype=float)
    names = [f.name for f in dataclasses.fields(cls.record_type)]
    if rows.size == 0:
      return cls.empty(num_points)
    if rows.ndim != 2 or rows.shape[1] != len(names):
      raise ValueError(
          f'{cls.element} rows must have shape (m, {len(names)}), got {rows.shape}')
    index_fields = cls.record_type._index_fields
    records = []
    for row_number, row in enumerate(rows, start=1):
      kwargs = {}
      for name, value in zip(names, row):
        if name in index_fields:
          if value != int(value):
            raise ValueError(f'{cls.element} {name} must be an integer, got {value}')
          value = int(value)
        kwargs[name] = value
      try:
        records.append(cls.record_type(**kwargs))
      except PointIndexError as err:
        raise PointIndexError(
            f'row references point {err.index}, but point identities start at 1',
            element=cls.element, index=row_number) from err
    return cls.from_records(records, num_points)

  @classmethod
  def empty(cls, num_points: int = 0):
    """A table with no elements; its contribution is identically zero."""
    return cls.from_records([], num_points)


@register_pytree_node_class
@dataclasses.dataclass
class SpringTable(_ElementTable):
  master: Array
  slave: Array
  stiffness: Array
  resting_length: Array
  num_points: int = 0
  element: ClassVar[str] = 'spring'
  record_type: ClassVar[type] = Spring


@register_pytree_node_class
@dataclasses.dataclass
class BeamTable(_ElementTable):
  first: Array
  middle: Array
  last: Array
  stiffness: Array
  curvature: Array
  num_points: int = 0
  element: ClassVar[str] = 'beam'
  record_type: ClassVar[type] = Beam


@register_pytree_node_class
@dataclasses.dataclass
class TargetTable(_ElementTable):
  point: Array
  anchor_x: Array
  anchor_y: Array
  stiffness: Array
  num_points: int = 0
  element: ClassVar[str] = 'target'
  record_type: ClassVar[type] = Target


@register_pytree_node_class
@dataclasses.dataclass
class MassTable(_ElementTable):
  point: Array
  anchor_x: Array
  anchor_y: Array
  stiffness: Array
  mass: Array
  num_points: int = 0
  element: ClassVar[str] = 'mass'
  record_type: ClassVar[type] = Mass


@register_pytree_node_class
@dataclasses.dataclass
class MuscleTable(_ElementTable):
  master: Array
  slave: Array
  optimal_length: Array
  force_scale: Array
  hill_a: Array
  hill_b: Array
  max_force: Array
  num_points: int = 0
  element: ClassVar[str] = 'muscle'
  record_type: ClassVar[type] = Muscle


# --- MODEL CONFIGURATION ---
class ElementKind(enum.Enum):
  """The structural element categories that can be switched on and off."""
  SPRINGS = 'springs'
  BEAMS = 'beams'
  TARGETS = 'targets'
  MASSES = 'masses'
  MUSCLES = 'muscles'            # length-tension / force-velocity muscles
  HILL_MUSCLES = 'hill_muscles'  # three-element Hill muscles


@dataclasses.dataclass(frozen=True)
class ModelFlags:
  """Which element categories contribute to the force. Any subset may be on."""
  springs: bool = False
  beams: bool = False
  targets: bool = False
  masses: bool = False
  muscles: bool = False
  hill_muscles: bool = False

  @classmethod
  def from_kinds(cls, kinds: Iterable[Union[ElementKind, str]]) -> 'ModelFlags':
    return cls(**{ElementKind(kind).value: True for kind in kinds})

  @classmethod
  def from_mapping(cls, switches: Mapping[str, Any]) -> 'ModelFlags':
    """
    Builds flags from a flat `{name: 0/1}` mapping, as parsed from an input file.

    Raises:
      KeyError: For a switch name that is not an `ElementKind`.
    """
    known = {kind.value for kind in ElementKind}
    unknown = set(switches) - known
    if unknown:
      raise KeyError(f'unknown element switches {sorted(unknown)}; expected {sorted(known)}')
    return cls(**{name: bool(value) for name, value in switches.items()})

  @classmethod
  def all(cls) -> 'ModelFlags':
    return cls.from_kinds(ElementKind)

  @property
  def enabled(self) -> frozenset:
    return frozenset(kind for kind in ElementKind if getattr(self, kind.value))

  def is_enabled(self, kind: ElementKind) -> bool:
    return getattr(self, ElementKind(kind).value)


@dataclasses.dataclass(frozen=True)
class StructureTables:
  """All element tables of one structure. Missing tables are empty."""
  springs: SpringTable = dataclasses.field(default_factory=SpringTable.empty)
  beams: BeamTable = dataclasses.field(default_factory=BeamTable.empty)
  targets: TargetTable = dataclasses.field(default_factory=TargetTable.empty)
  masses: MassTable = dataclasses.field(default_factory=MassTable.empty)
  muscles: MuscleTable = dataclasses.field(default_factory=MuscleTable.empty)
  hill_muscles: MuscleTable = dataclasses.field(default_factory=MuscleTable.empty)

  def table(self, kind: ElementKind) -> _ElementTable:
    return getattr(self, ElementKind(kind).value)

  def tables(self) -> Sequence[Tuple[ElementKind, _ElementTable]]:
    return [(kind, self.table(kind)) for kind in ElementKind]
