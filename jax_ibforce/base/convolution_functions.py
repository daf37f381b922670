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
Provides discrete delta functions for the IBM.

Spreading a Lagrangian force onto the Eulerian grid is a discrete convolution
with a smooth approximation of the Dirac delta function:

    `f(x) = ∑ F_k δ_h(x - X_k) ds`

In two dimensions the kernel is separable, `δ_h(x, y) = δ_h(x) δ_h(y)`, so only
a 1D kernel is defined here. Each kernel is a `DeltaKernel` policy: a function
`phi` of the offset measured in grid units, together with the number of grid
cells (`support`) on which it is non-zero. The physical kernel is
`δ_h(r) = phi(r / h) / h`.

Every built-in `phi` is
  * compactly supported: exactly zero for `|r| >= support / 2`,
  * continuous, with no jumps inside the support,
  * even, `phi(r) == phi(-r)`,
  * a discrete partition of unity: `∑_j phi(r - j) == 1` for every shift `r`,
    so the weights of one point sum to `1 / h` and spreading conserves force.
"""

import dataclasses
import logging
from typing import Callable, Optional

import jax.numpy as jnp

from jax_ibforce.base.errors import DomainError

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class DeltaKernel:
  """A 1D discrete delta function policy.

  Attributes:
    name: Registry name, used in log and error messages.
    support: Number of consecutive grid cells on which `phi` is non-zero.
    phi: The kernel in grid units, `phi(r)` for `r = offset / h`.
  """
  name: str
  support: int
  phi: Callable

  def __call__(self, r, h):
    """Evaluates `phi(r / h) / h`."""
    return self.phi(r / h) / h


def _phi_peskin_4pt(r):
  """Peskin's 4-point kernel (Peskin 2002, Acta Numerica, eq. 6.27)."""
  r = jnp.abs(r)
  # The square-root arguments go negative outside their own branch; clamp them
  # so that the unselected branch of `jnp.where` stays finite.
  inner = (3. - 2. * r + jnp.sqrt(jnp.maximum(1. + 4. * r - 4. * r**2, 0.))) / 8.
  outer = (5. - 2. * r - jnp.sqrt(jnp.maximum(-7. + 12. * r - 4. * r**2, 0.))) / 8.
  return jnp.where(r < 1., inner, jnp.where(r < 2., outer, 0.))


def _phi_hat_2pt(r):
  """Linear hat function, i.e. bilinear interpolation weights."""
  return jnp.maximum(1. - jnp.abs(r), 0.)


def _make_phi_cosine(support):
  half = support / 2.

  def phi(r):
    # Summing cos(2*pi*(r + j)/support) over `support` consecutive integers j
    # gives zero, which makes this a partition of unity for any even support.
    value = (1. + jnp.cos(2. * jnp.pi * r / support)) / support
    return jnp.where(jnp.abs(r) < half, value, 0.)

  return phi


peskin_4pt = DeltaKernel('peskin_4pt', 4, _phi_peskin_4pt)
hat_2pt = DeltaKernel('hat_2pt', 2, _phi_hat_2pt)


def cosine_kernel(support: int = 4) -> DeltaKernel:
  """Returns the cosine kernel `(1 + cos(2 pi r / supp)) / supp` of a given support."""
  if support < 2 or support % 2:
    raise DomainError(f'cosine kernel support must be even and >= 2, got {support}')
  return DeltaKernel(f'cosine_{support}pt', support, _make_phi_cosine(support))


_KERNELS = {
    'peskin_4pt': lambda support: peskin_4pt,
    'hat_2pt': lambda support: hat_2pt,
    'cosine': cosine_kernel,
}


def get_kernel(name: str, support: Optional[int] = None) -> DeltaKernel:
  """Looks up a kernel by name; `support` only matters for the cosine family."""
  try:
    factory = _KERNELS[name]
  except KeyError:
    raise ValueError(
        f'unknown delta kernel {name!r}, expected one of {sorted(_KERNELS)}'
    ) from None
  kernel = factory(4 if support is None else support)
  if support is not None:
    check_support(kernel, support)
  logger.debug('using delta kernel %s (support %d)', kernel.name, kernel.support)
  return kernel


def check_support(kernel: DeltaKernel, supp: int) -> None:
  """Raises `DomainError` if the kernel does not vanish outside `supp` cells."""
  if kernel.support != supp:
    raise DomainError(
        f'delta kernel {kernel.name} has support {kernel.support} but the index '
        f'window has {supp} cells')


def delta_kernel(r, h, kernel: DeltaKernel = peskin_4pt, supp: Optional[int] = None):
  """
  Evaluates the discrete delta function at Eulerian-minus-Lagrangian offset `r`.

  Args:
    r: Offset(s) `x_eulerian - x_lagrangian`, in physical units.
    h: Grid spacing along the axis of `r`.
    kernel: The `DeltaKernel` policy to evaluate.
    supp: Support width of the index window the offsets were taken from. When
      given it must equal `kernel.support`, otherwise the window would either
      truncate the kernel or carry dead zero weights.

  Returns:
    `phi(r / h) / h`, exactly zero for `|r| >= kernel.support * h / 2`.
  """
  if supp is not None:
    check_support(kernel, supp)
  return kernel(r, h)
