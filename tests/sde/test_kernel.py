# tests/sde/test_kernel.py
import numpy as np
import pytest
from scipy.integrate import trapezoid
from scipy.stats import norm

from npsmle.sde.estimators.kernel import (
    bandwidth_fraction,
    ensemble_bandwidth,
    gaussian_kernel,
    product_kernel_density,
)


def test_bandwidth_fraction_value_and_monotonicity():
    assert bandwidth_fraction(1) == pytest.approx((4.0 / 3.0) ** 0.2)
    assert bandwidth_fraction(32) == pytest.approx(
        (4.0 / 3.0) ** 0.2 * 32.0 ** (-0.3)
    )

    fracs = [bandwidth_fraction(n) for n in (2, 10, 100, 1000, 10000)]
    assert all(a > b for a, b in zip(fracs, fracs[1:]))

    with pytest.raises(ValueError):
        bandwidth_fraction(0)


def test_gaussian_kernel_matches_normal_pdf():
    centers = np.array([-1.0, 0.0, 2.5])
    got = gaussian_kernel(0.3, centers, 0.7)
    assert np.allclose(got, norm.pdf(0.3, loc=centers, scale=0.7))


@pytest.mark.parametrize("loc,scale", [(100.0, 2.0), (0.04, 0.01)])
def test_marginal_density_integrates_to_one(loc, scale):
    rng = np.random.default_rng(42)
    xs = loc + scale * rng.standard_normal(250)
    h = ensemble_bandwidth(xs, bandwidth_fraction(xs.size))
    assert h > 0.0

    grid = np.linspace(xs.min() - 10 * h, xs.max() + 10 * h, 4001)
    density = gaussian_kernel(grid[:, None], xs[None, :], h).mean(axis=1)

    assert trapezoid(density, grid) == pytest.approx(1.0, abs=1e-4)


def test_ensemble_bandwidth_ddof():
    xs = np.array([1.0, 2.0, 3.0, 4.0])
    assert ensemble_bandwidth(xs, 0.5, ddof=1) == pytest.approx(0.5 * np.std(xs, ddof=1))
    assert ensemble_bandwidth(xs, 0.5, ddof=0) == pytest.approx(0.5 * np.std(xs))


def test_product_kernel_density():
    xs = np.array([0.0, 1.0, 2.0])
    ys = np.array([10.0, 11.0, 12.0])
    got = product_kernel_density(1.2, 10.5, xs, ys, 0.4, 0.8)
    expected = np.mean(norm.pdf(1.2, xs, 0.4) * norm.pdf(10.5, ys, 0.8))
    assert got == pytest.approx(expected)

    with pytest.raises(ValueError):
        product_kernel_density(0.0, 0.0, xs, ys[:2], 1.0, 1.0)
