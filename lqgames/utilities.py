import numpy as np
import pandas as pd

from .exceptions import DimensionMismatch


def check_int_input(n, argname, low=None):
    """
    Convert an input to an int, raising errors if this cannot be done without
    loss of information or if the result is smaller than a given minimum.

    Parameters
    ----------
    n : array_like, size 1
        Input to check.
    argname : str
        How to refer to `n` in error messages.
    low : int, optional
        Minimum value which `n` may take.

    Returns
    -------
    n : int
        `n` converted to an int.

    Raises
    ------
    TypeError
        If `n` is not an int or array_like of size 1 with an integer dtype.
    ValueError
        If `n < low`.
    """
    if not isinstance(argname, str):
        raise TypeError("argname must be a str")
    if low is not None:
        low = check_int_input(low, 'low')

    try:
        n = int(np.squeeze(n).astype(np.int64, casting='safe'))
    except (TypeError, AttributeError):
        raise TypeError(f"{argname} must be an int")

    if low is not None and n < low:
        raise ValueError(f"{argname} must be greater than or equal to {low:d}")

    return n


def check_float_input(x, argname, low=None, high=None, strict_low=False,
                      strict_high=False):
    """
    Convert an input to a finite float and check that it lies in a given
    interval.

    Parameters
    ----------
    x : array_like, size 1
        Input to check.
    argname : str
        How to refer to `x` in error messages.
    low, high : float, optional
        Bounds on `x`.
    strict_low, strict_high : bool, default=False
        If `True`, require `x > low` (`x < high`) instead of `x >= low`
        (`x <= high`).

    Returns
    -------
    x : float
        `x` converted to a float.
    """
    try:
        x = float(np.squeeze(x))
    except (TypeError, ValueError):
        raise TypeError(f"{argname} must be a float")

    if not np.isfinite(x):
        raise ValueError(f"{argname} must be finite")

    if low is not None:
        if (strict_low and x <= low) or x < low:
            op = '>' if strict_low else '>='
            raise ValueError(f"{argname} must be {op} {low}")
    if high is not None:
        if (strict_high and x >= high) or x > high:
            op = '<' if strict_high else '<='
            raise ValueError(f"{argname} must be {op} {high}")

    return x


def reshape_inputs(x, u, n_states, n_controls):
    """
    Reshape 1d array states and controls into 2d arrays arranged by
    (dimension, point).

    Parameters
    ----------
    x : (n_states,) or (n_states, n_points) array
        State(s).
    u : (n_controls,) or (n_controls, n_points) array
        Control(s).
    n_states : int
        Expected state dimension.
    n_controls : int
        Expected control dimension.

    Returns
    -------
    x : (n_states, n_points) array
    u : (n_controls, n_points) array
    squeeze : bool
        `True` if either input was flat.

    Raises
    ------
    DimensionMismatch
        If states and controls can't be reshaped to the expected sizes, or if
        `x.shape[1] != u.shape[1]`.
    """
    squeeze = np.ndim(x) < 2 or np.ndim(u) < 2

    try:
        x = np.reshape(x, (n_states, -1))
    except ValueError:
        raise DimensionMismatch(f"x must be an array of shape ({n_states},) or "
                                f"({n_states}, n_points)")
    try:
        u = np.reshape(u, (n_controls, -1))
    except ValueError:
        raise DimensionMismatch(f"u must be an array of shape ({n_controls},) "
                                f"or ({n_controls}, n_points)")

    if x.shape[1] != u.shape[1]:
        raise DimensionMismatch(f"x.shape[1] = {x.shape[1]} != u.shape[1] = "
                                f"{u.shape[1]}")

    return x, u, squeeze


def pack_dataframe(t, x, u):
    """
    Collect a state-control trajectory into a `DataFrame`, for reporting and
    plotting tools. The trajectory has one more state than controls, so the
    controls are padded with `NaN` at the final time.

    Parameters
    ----------
    t : (n_points,) array
        Time stamps of the states.
    x : (n_states, n_points) array
        States at times `t`.
    u : (n_controls, n_points - 1) or (n_controls, n_points) array
        Controls applied at times `t[:-1]` (or `t`).

    Returns
    -------
    data : DataFrame
        `DataFrame` with `n_points` rows and columns 't', 'x1', ..., 'xn', 'u1',
        ..., 'um'.
    """
    t = np.reshape(t, -1)
    n_points = t.shape[0]
    x = np.reshape(x, (-1, n_points))
    u = np.reshape(u, (np.shape(u)[0], -1))

    if u.shape[1] == n_points - 1:
        u = np.hstack((u, np.full((u.shape[0], 1), np.nan)))
    elif u.shape[1] != n_points:
        raise DimensionMismatch("u must have n_points or n_points - 1 columns")

    columns = (['t'] + ['x' + str(i + 1) for i in range(x.shape[0])]
               + ['u' + str(i + 1) for i in range(u.shape[0])])

    return pd.DataFrame(np.vstack((t[None], x, u)).T, columns=columns)
