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
This `__init__.py` file makes the `jax_ibforce.base` directory a Python package.

The modules are grouped by their functionality.
"""

# --- Foundational data structures ---

# Exception taxonomy shared by every module.
import jax_ibforce.base.errors

# The Eulerian `Grid`, `GridArray`, and the per-timestep `GridDescriptor`.
import jax_ibforce.base.grids

# Lagrangian points, element records and tables, and the model flags.
import jax_ibforce.base.structure_class


# --- Lagrangian-to-Eulerian transfer ---

# The discrete delta function kernels.
import jax_ibforce.base.convolution_functions

# Support windows of Eulerian indices around each Lagrangian point.
import jax_ibforce.base.index_mapping

# Spreading operator and the top-level force entry point.
import jax_ibforce.base.IBM_Force
