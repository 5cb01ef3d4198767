from functools import partial
from typing import Callable, Optional, Tuple

import numpy as np

PredictFn = Callable[[np.ndarray, np.ndarray, float], Tuple[float, float]]


def predict(a_factors, b_factors, observed, min_value=None, max_value=None):
    """
    Predict a rating from two factor vectors.

    Parameters:
    -----------
    a_factors : np.ndarray
        Factor vector of one endpoint (item or user)
    b_factors : np.ndarray
        Factor vector of the other endpoint
    observed : float
        Observed rating on the edge joining the two vertices
    min_value : float, optional
        Lower clip for the prediction, no clipping if None
    max_value : float, optional
        Upper clip for the prediction, no clipping if None

    Returns:
    --------
    prediction : float
        Dot product of the factor vectors, clipped to the rating range
    squared_error : float
        (observed - prediction) ** 2
    """
    prediction = float(np.dot(a_factors, b_factors))
    if min_value is not None and prediction < min_value:
        prediction = float(min_value)
    if max_value is not None and prediction > max_value:
        prediction = float(max_value)
    squared_error = (observed - prediction) ** 2
    return prediction, squared_error


def make_predictor(
    min_value: Optional[float] = None,
    max_value: Optional[float] = None
) -> PredictFn:
    """Bind the rating range into a three-argument predict function."""
    if (min_value is not None and max_value is not None
            and min_value > max_value):
        raise ValueError(
            f"min_value ({min_value}) must not exceed max_value ({max_value})"
        )
    return partial(predict, min_value=min_value, max_value=max_value)
