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
`jax_ibforce` computes the structural forcing term of a two-dimensional
Immersed Boundary (IB) fluid-structure interaction solver, written in JAX.

Given the Lagrangian points of an immersed structure and its element tables
(springs, beams, targets, masses and muscles), it evaluates the elastic and
active force density on every point, sums them, and spreads the result onto
the Eulerian fluid grid with a compactly supported discrete delta function.
The fluid solver, the structure advection step, and the time loop live
outside this package.
"""

# Grids, kernels, index mapping, the structure data model and the spreading
# operator, including the top-level `calc_IBM_force` entry point.
import jax_ibforce.base

# One force-density generator per structural element kind, the muscle
# activation policies, and the aggregator that sums them.
import jax_ibforce.structure

from jax_ibforce.base.IBM_Force import calc_IBM_force
from jax_ibforce.base.IBM_Force import superpose_forces
from jax_ibforce.logging_config import setup_logging
