import jax.numpy as jnp
import numpy as np
import pytest

from jax_ibforce.base import convolution_functions as cf
from jax_ibforce.base.errors import DomainError

KERNELS = [cf.peskin_4pt, cf.hat_2pt, cf.cosine_kernel(2), cf.cosine_kernel(4),
           cf.cosine_kernel(6)]


@pytest.mark.parametrize('kernel', KERNELS, ids=lambda k: k.name)
def test_partition_of_unity(kernel):
  h = 0.1
  for shift in [0.0, 0.13, 0.5, 0.77]:
    # Offsets from a point at `shift` cells to every node in a wide window.
    r = (np.arange(-8, 9) - shift) * h
    total = np.sum(np.asarray(cf.delta_kernel(r, h, kernel)))
    np.testing.assert_allclose(total, 1.0 / h, rtol=1e-12)


@pytest.mark.parametrize('kernel', KERNELS, ids=lambda k: k.name)
def test_zero_outside_support_and_symmetric(kernel):
  h = 0.25
  half = kernel.support / 2
  r = jnp.array([half, half + 0.3, half + 5.0]) * h
  np.testing.assert_array_equal(cf.delta_kernel(r, h, kernel), 0.0)
  np.testing.assert_array_equal(cf.delta_kernel(-r, h, kernel), 0.0)
  inside = jnp.linspace(0.0, half, 11)[:-1] * h
  np.testing.assert_allclose(cf.delta_kernel(inside, h, kernel),
                             cf.delta_kernel(-inside, h, kernel), rtol=1e-14)
  assert np.all(np.asarray(cf.delta_kernel(inside, h, kernel)) > 0)


def test_peskin_values():
  phi = cf.peskin_4pt.phi
  np.testing.assert_allclose(phi(jnp.array([0.0, 1.0, 2.0])), [0.5, 0.25, 0.0])


def test_peskin_is_continuous_at_branch_points():
  phi = cf.peskin_4pt.phi
  eps = 1e-9
  for r in [1.0, 2.0]:
    np.testing.assert_allclose(phi(r - eps), phi(r + eps), atol=1e-6)


def test_support_mismatch_raises():
  with pytest.raises(DomainError):
    cf.delta_kernel(0.0, 1.0, cf.peskin_4pt, supp=6)


def test_get_kernel():
  assert cf.get_kernel('peskin_4pt') is cf.peskin_4pt
  assert cf.get_kernel('cosine', 6).support == 6
  with pytest.raises(DomainError):
    cf.get_kernel('hat_2pt', 4)
  with pytest.raises(ValueError):
    cf.get_kernel('gaussian')


def test_cosine_kernel_rejects_odd_support():
  with pytest.raises(DomainError):
    cf.cosine_kernel(3)
