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
This `__init__.py` file makes the `jax_ibforce.structure` directory a Python
subpackage.

Each element kind has its own force-density generator. The generators are
independent pure functions of the positions and their table, so they can be
evaluated in any order; `aggregate` runs the enabled ones and sums them.
"""

import jax_ibforce.structure.springs
import jax_ibforce.structure.beams
import jax_ibforce.structure.targets
import jax_ibforce.structure.activation
import jax_ibforce.structure.muscles
import jax_ibforce.structure.aggregate
