import pytest

import numpy as np

from lqgames import utilities
from lqgames.differentiation import FiniteDifference
from lqgames.exceptions import DimensionMismatch


rng = np.random.default_rng()


@pytest.mark.parametrize('n', [0., 1.5, np.array([[5], [6]]), [7, 8], 'n'])
def test_check_int_input_bad_type(n):
    """Make sure `check_int_input` catches a range of bad input types."""
    with pytest.raises(TypeError):
        utilities.check_int_input(n, 'n')


@pytest.mark.parametrize('shape', [(), (1,), (1, 1)])
def test_check_int_input(shape):
    """Make sure `check_int_input` works with a variety of acceptable inputs."""
    n = rng.choice(100, size=shape) - 50
    _n = int(np.squeeze(n))
    assert utilities.check_int_input(n.tolist(), 'n') == _n
    for dtype in [np.int8, np.int16, np.int32, np.int64]:
        assert utilities.check_int_input(n.astype(dtype), 'n') == _n


@pytest.mark.parametrize('low', [0, 1, -5, 10])
def test_check_int_input_with_low(low):
    assert utilities.check_int_input(low, 'n', low=low) == low
    assert utilities.check_int_input(low + 1, 'n', low=low) == low + 1
    with pytest.raises(ValueError):
        utilities.check_int_input(low - 1, 'n', low=low)


@pytest.mark.parametrize('x', ['x', [1., 2.], None])
def test_check_float_input_bad_type(x):
    with pytest.raises(TypeError):
        utilities.check_float_input(x, 'x')


def test_check_float_input_bounds():
    assert utilities.check_float_input(np.array([[0.5]]), 'x') == 0.5
    assert utilities.check_float_input(1, 'x', low=1.) == 1.
    assert utilities.check_float_input(1, 'x', high=1.) == 1.
    with pytest.raises(ValueError):
        utilities.check_float_input(1, 'x', low=1., strict_low=True)
    with pytest.raises(ValueError):
        utilities.check_float_input(1, 'x', high=1., strict_high=True)
    with pytest.raises(ValueError):
        utilities.check_float_input(0.5, 'x', low=1.)
    with pytest.raises(ValueError):
        utilities.check_float_input(np.inf, 'x')


@pytest.mark.parametrize('n_points', [0, 1, 5])
def test_reshape_inputs(n_points):
    shape = () if n_points == 0 else (n_points,)
    x = rng.normal(size=(3,) + shape)
    u = rng.normal(size=(2,) + shape)

    x_2d, u_2d, squeeze = utilities.reshape_inputs(x, u, 3, 2)
    assert squeeze == (n_points == 0)
    assert x_2d.shape == (3, max(n_points, 1))
    assert u_2d.shape == (2, max(n_points, 1))

    with pytest.raises(DimensionMismatch):
        utilities.reshape_inputs(x, u, 4, 2)
    with pytest.raises(DimensionMismatch):
        utilities.reshape_inputs(rng.normal(size=(3, 2)),
                                 rng.normal(size=(2, 3)), 3, 2)


def test_pack_dataframe():
    t = np.linspace(0., 1., 6)
    x = rng.normal(size=(2, 6))
    u = rng.normal(size=(3, 5))

    data = utilities.pack_dataframe(t, x, u)

    assert list(data.columns) == ['t', 'x1', 'x2', 'u1', 'u2', 'u3']
    assert data.shape == (6, 6)
    np.testing.assert_array_equal(data['t'], t)
    np.testing.assert_array_equal(data[['x1', 'x2']].to_numpy().T, x)
    np.testing.assert_array_equal(data[['u1', 'u2', 'u3']].to_numpy()[:-1].T,
                                  u)
    assert data[['u1', 'u2', 'u3']].iloc[-1].isna().all()

    data = utilities.pack_dataframe(t, x, np.hstack((u, u[:, -1:])))
    assert not data.isna().any().any()

    with pytest.raises(DimensionMismatch):
        utilities.pack_dataframe(t, x, u[:, :3])


@pytest.mark.parametrize('n_points', range(4))
@pytest.mark.parametrize('n_states', range(1, 4))
@pytest.mark.parametrize('n_out', range(4))
@pytest.mark.parametrize('method', ['2-point', '3-point', 'cs'])
def test_finite_difference(n_states, n_out, n_points, method):
    if n_points == 0:
        x = rng.uniform(low=-1., high=1., size=(n_states,))
    else:
        x = rng.uniform(low=-1., high=1., size=(n_states, n_points))

    w = np.pi * np.arange(1, n_states + 1)
    if n_points > 0:
        w = w.reshape(-1, 1)

    if n_out == 0:
        n_out = 1
        flatten = True
    else:
        flatten = False

    def vector_fun(x):
        f = [np.cos(i * (x * w).sum(axis=0)) for i in range(1, n_out + 1)]
        f = np.stack(f, axis=0)
        if flatten:
            return f[0]
        else:
            return f

    # Construct analytical derivatives for comparison
    if n_points == 0:
        dfdx_expected = np.empty((n_out, n_states))
    else:
        dfdx_expected = np.empty((n_out, n_states, n_points))
    for i in range(1, n_out + 1):
        dfdx_expected[i - 1] = -i * np.sin(i * (x * w).sum(axis=0)) * w
    if flatten:
        dfdx_expected = dfdx_expected[0]

    dfdx_approx = FiniteDifference(method=method).jacobian(vector_fun, x)
    np.testing.assert_allclose(dfdx_approx, dfdx_expected, rtol=1e-03,
                               atol=1e-06)


def test_finite_difference_abs_step():
    fun = lambda x: np.sum(x ** 3, axis=0)
    x = rng.uniform(low=-1., high=1., size=(3, 2))
    diff = FiniteDifference(method='3-point', abs_step=1e-04)
    np.testing.assert_allclose(diff.jacobian(fun, x), 3. * x ** 2, rtol=1e-06,
                               atol=1e-07)


def test_finite_difference_bad_method():
    with pytest.raises(ValueError):
        FiniteDifference(method='5-point')


@pytest.mark.parametrize('method', ['2-point', '3-point', 'cs'])
def test_finite_difference_reuses_f0(method):
    A = rng.normal(size=(2, 3, 4))
    fun = lambda x: np.einsum('ijk,k...->ij...', A, x)
    x = rng.normal(size=(4, 5))
    diff = FiniteDifference(method=method)

    dfdx = diff.jacobian(fun, x, f0=fun(x))
    assert dfdx.shape == (2, 3, 4, 5)
    np.testing.assert_allclose(dfdx, np.broadcast_to(A[..., None], dfdx.shape),
                               rtol=1e-06, atol=1e-06)
    np.testing.assert_allclose(dfdx, diff.jacobian(fun, x))
