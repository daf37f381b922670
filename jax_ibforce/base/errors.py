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
Exception classes raised by the force computation.

Every error aborts the force computation for the current timestep. A force
field polluted with NaN/Inf would otherwise be handed to the fluid solver and
destabilize the run without any visible cause. Each exception records the
element kind and the 1-based identity of the offending element or point so
that the driver can report exactly which piece of geometry is malformed.
"""

from typing import Optional


class IBForceError(Exception):
  """Base class for all errors raised while computing IB forces."""

  def __init__(self, message: str, element: Optional[str] = None,
               index: Optional[int] = None):
    # Prefix the message with the location so that a bare `str(err)` is
    # already enough to find the bad element.
    where = []
    if element is not None:
      where.append(element)
    if index is not None:
      where.append(f'#{index}')
    if where:
      message = f"[{' '.join(where)}] {message}"
    super().__init__(message)
    self.element = element
    self.index = index


class DegenerateGeometryError(IBForceError):
  """A spring or muscle has zero length, so its direction is undefined."""


class OutOfDomainError(IBForceError):
  """A kernel support window does not fit on a non-periodic axis."""


class DomainError(IBForceError):
  """Inconsistent configuration, e.g. kernel support != descriptor support."""


class PointIndexError(IBForceError, IndexError):
  """An element table references a point outside [1, Nb]."""
