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
Muscle activation policies.

A policy turns the kinematic state of every muscle into a scalar contractile
force. All policies share one signature and are vectorized over muscles:

    policy(v, LF, LFO, SK, a, b, Fmax, time, master_position, positions) -> Fm

where `v` is the shortening speed, `LF` the current fiber length, `LFO` the
optimal length, `SK` the width of the length-tension curve, `a` and `b` the
constants of Hill's force-velocity relation, `Fmax` the peak isometric force,
`master_position` the `(m, 2)` positions of the master points and `positions`
the `(Nb, 2)` positions of all points. Any callable with this signature may be
passed to the force computation.

The temporal/spatial activation shape is itself a pluggable `waveform(time,
master_position) -> [0, 1]`.
"""

import jax.numpy as jnp


def constant_waveform(time, master_position):
  """Full activation, everywhere and always."""
  del time
  return jnp.ones(jnp.shape(master_position)[:-1])


def traveling_wave(period, wavelength, axis=0, phase=0.0):
  """Returns a waveform `sin^2(pi (t / period - x / wavelength) + phase)`.

  Args:
    period: Time for one activation cycle at a fixed location.
    wavelength: Spatial wavelength along `axis`; the wave moves in +`axis`.
    axis: 0 for a wave travelling along x, 1 for y.
    phase: Constant phase shift, in radians.
  """

  def waveform(time, master_position):
    x = master_position[..., axis]
    return jnp.sin(jnp.pi * (time / period - x / wavelength) + phase)**2

  return waveform


def length_tension(LF, LFO, SK):
  """Gaussian length-tension curve, 1 at the optimal length."""
  return jnp.exp(-(((LF / LFO) - 1.) / SK)**2)


def force_velocity(v, a, b, Fmax):
  """Hill's hyperbola `(F + a)(v + b) = (Fmax + a) b`, clipped at zero force."""
  return jnp.maximum((b * Fmax - a * v) / (b + v), 0.)


def length_tension_force_velocity(waveform=constant_waveform):
  """Returns the policy `Fm = waveform * F_LT * F_FV`."""

  def policy(v, LF, LFO, SK, a, b, Fmax, time, master_position, positions):
    del positions
    return (waveform(time, master_position) * length_tension(LF, LFO, SK)
            * force_velocity(v, a, b, Fmax))

  return policy


def hill_three_element(waveform=constant_waveform, passive_stiffness=4.0,
                       passive_strain=0.6):
  """
  Returns a three-element Hill policy: the contractile element of
  `length_tension_force_velocity` in parallel with an exponential passive
  element that only resists stretch beyond the optimal length.

  Args:
    waveform: Activation waveform of the contractile element.
    passive_stiffness: Shape factor of the exponential passive curve.
    passive_strain: Strain at which the passive force reaches `Fmax`.
  """
  contractile = length_tension_force_velocity(waveform)

  def policy(v, LF, LFO, SK, a, b, Fmax, time, master_position, positions):
    active = contractile(v, LF, LFO, SK, a, b, Fmax, time, master_position, positions)
    strain = LF / LFO - 1.
    passive = Fmax * (jnp.exp(passive_stiffness * strain / passive_strain) - 1.) / (
        jnp.exp(passive_stiffness) - 1.)
    return active + jnp.where(strain > 0., passive, 0.)

  return policy
