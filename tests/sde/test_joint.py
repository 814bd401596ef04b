# tests/sde/test_joint.py
import numpy as np
import pytest

from npsmle.sde.integrators import (
    ConstantNormalSource,
    GeneratorNormalSource,
    SequenceNormalSource,
    correlate_shocks,
)
from npsmle.sde.processes.joint import joint_path_frame, simulate_joint
from npsmle.sde.schemas import ModelParameters


PARAMS = ModelParameters(
    gamma_p=0.5,
    mu_p=100.0,
    gamma_v=2.0,
    mu_v=0.04,
    beta_v=0.02,
    sigma_v=0.1,
    rho_pv=-0.4,
)


def test_joint_shapes_and_reproducibility():
    sentiment = np.linspace(-1.0, 1.0, 50)

    P1, V1 = simulate_joint(
        PARAMS, 0.01, 50, 4, 100.0, 0.04, sentiment, source=GeneratorNormalSource(seed=7)
    )
    P2, V2 = simulate_joint(
        PARAMS, 0.01, 50, 4, 100.0, 0.04, sentiment, source=GeneratorNormalSource(seed=7)
    )
    assert P1.shape == (50,)
    assert V1.shape == (50,)
    assert np.array_equal(P1, P2)
    assert np.array_equal(V1, V2)
    assert P1[0] == 100.0 and V1[0] == 0.04

    P3, _ = simulate_joint(
        PARAMS, 0.01, 50, 4, 100.0, 0.04, sentiment, source=GeneratorNormalSource(seed=8)
    )
    assert not np.array_equal(P1, P3)


def test_zero_noise_single_step():
    params = ModelParameters(
        gamma_p=1.0,
        mu_p=100.0,
        gamma_v=1.5,
        mu_v=0.05,
        beta_v=0.1,
        sigma_v=0.3,
        rho_pv=0.0,
    )
    sentiment = np.array([-0.4, -0.4])
    price, volatility = simulate_joint(
        params, 1.0, 2, 1, 100.0, 0.04, sentiment, source=ConstantNormalSource(0.0)
    )

    expected_v = 0.04 + params.gamma_v * (
        params.mu_v + params.beta_v * abs(sentiment[0]) - 0.04
    ) * 1.0
    assert price[1] == 100.0
    assert volatility[1] == expected_v


def test_coarse_and_fine_sentiment_grids():
    params = PARAMS.model_copy(update={"rho_pv": 0.0})
    delta = 0.5

    # coarse: every sub-step of interval 1 reads sentiment[1]
    _, v_coarse = simulate_joint(
        params, 1.0, 2, 2, 100.0, 0.04, [9.0, 0.3], source=ConstantNormalSource(0.0)
    )
    v = 0.04
    for _ in range(2):
        v = v + params.gamma_v * (params.mu_v + params.beta_v * 0.3 - v) * delta
    assert v_coarse[1] == pytest.approx(v, rel=1e-14)

    # fine: sub-step j of interval 1 reads sentiment[j]
    _, v_fine = simulate_joint(
        params,
        1.0,
        2,
        2,
        100.0,
        0.04,
        [0.3, -1.2],
        source=ConstantNormalSource(0.0),
        sentiment_grid="fine",
    )
    v = 0.04
    for s in (0.3, 1.2):
        v = v + params.gamma_v * (params.mu_v + params.beta_v * s - v) * delta
    assert v_fine[1] == pytest.approx(v, rel=1e-14)


def test_degenerate_volatility_stays_zero():
    params = ModelParameters(
        gamma_p=0.8, mu_p=50.0, gamma_v=0.0, mu_v=0.0, beta_v=0.0, sigma_v=0.0, rho_pv=0.3
    )
    sentiment = np.sin(np.arange(40))
    _, volatility = simulate_joint(
        params, 0.1, 40, 5, 45.0, 0.0, sentiment, source=GeneratorNormalSource(seed=3)
    )
    assert np.all(volatility == 0.0)


def test_draw_order_and_consumption():
    # one interval, one sub-step: volatility shock first, then price shock
    params = PARAMS.model_copy(update={"rho_pv": 1.0, "gamma_p": 0.0, "gamma_v": 0.0})
    source = SequenceNormalSource([1.5, -2.0])
    price, volatility = simulate_joint(params, 1.0, 2, 1, 10.0, 0.25, [0.0, 0.0], source=source)

    assert source.consumed == 2
    # rho = 1: both paths are driven by the first draw
    assert price[1] == pytest.approx(10.0 + 1.5 * 10.0 * 0.5)
    assert volatility[1] == pytest.approx(0.25 + 1.5 * params.sigma_v * 0.5)

    source = SequenceNormalSource([0.0] * 7)
    with pytest.raises(IndexError):
        simulate_joint(PARAMS, 1.0, 3, 2, 10.0, 0.25, [0.0] * 3, source=source)


def test_correlation_boundaries():
    rng = np.random.default_rng(0)
    z_p = rng.standard_normal(1000)
    w_v = rng.standard_normal(1000)

    assert np.array_equal(correlate_shocks(z_p, w_v, 0.0), z_p)
    assert np.array_equal(correlate_shocks(z_p, w_v, 1.0), w_v)
    assert np.array_equal(correlate_shocks(z_p, w_v, -1.0), -w_v)

    w_p = correlate_shocks(z_p, w_v, 0.6)
    assert abs(np.corrcoef(w_p, w_v)[0, 1] - 0.6) < 0.1


def test_in_place_outputs_and_frame():
    price = np.zeros(10)
    volatility = np.zeros(10)
    P, V = simulate_joint(
        PARAMS,
        0.1,
        10,
        2,
        100.0,
        0.04,
        np.zeros(10),
        source=GeneratorNormalSource(seed=1),
        price=price,
        volatility=volatility,
    )
    assert P is price
    assert V is volatility
    assert np.all(price[1:] != 0.0)

    df = joint_path_frame(P, V, 0.1)
    assert list(df.columns) == ["price", "volatility"]
    assert df.shape == (10, 2)
    assert df.index[-1] == pytest.approx(0.9)


def test_simulate_rejects_bad_inputs():
    with pytest.raises(ValueError):
        simulate_joint(PARAMS, 0.0, 10, 1, 100.0, 0.04, np.zeros(10))
    with pytest.raises(ValueError):
        simulate_joint(PARAMS, 0.1, 10, 0, 100.0, 0.04, np.zeros(10))
    with pytest.raises(ValueError):
        simulate_joint(PARAMS, 0.1, 10, 1, 100.0, 0.04, np.zeros(5))
    with pytest.raises(ValueError):
        simulate_joint(
            PARAMS, 0.1, 10, 3, 100.0, 0.04, np.zeros(20), sentiment_grid="fine"
        )
    with pytest.raises(ValueError):
        simulate_joint(PARAMS, 0.1, 10, 1, 100.0, 0.04, np.zeros(10), price=np.zeros(9))


def test_parameters_vector_roundtrip_and_rho_bounds():
    x = PARAMS.to_vector()
    assert x.tolist() == [0.5, 100.0, 2.0, 0.04, 0.02, 0.1, -0.4]
    assert ModelParameters.from_vector(x) == PARAMS

    with pytest.raises(ValueError):
        ModelParameters(**{**PARAMS.model_dump(), "rho_pv": 1.2})
    with pytest.raises(ValueError):
        ModelParameters.from_vector([0.5, 100.0, 2.0, 0.04, 0.02, 0.1])
