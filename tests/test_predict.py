"""
Tests for the rating prediction function
"""
import numpy as np
import pytest

from graphnmf import make_predictor, predict


def test_prediction_is_dot_product():
    """Prediction and squared error of an edge"""
    prediction, sq_err = predict(np.array([1., 2.]), np.array([3., 0.5]), 5.)
    assert prediction == pytest.approx(4.)
    assert sq_err == pytest.approx(1.)


def test_prediction_clipped_to_rating_range():
    """Clipping applies before the squared error"""
    predict_fn = make_predictor(min_value=1., max_value=5.)
    prediction, sq_err = predict_fn(np.array([3.]), np.array([3.]), 4.)
    assert prediction == 5.
    assert sq_err == pytest.approx(1.)
    prediction, _ = predict_fn(np.array([0.1]), np.array([0.1]), 4.)
    assert prediction == 1.


def test_invalid_range_rejected():
    """min above max is a configuration error"""
    with pytest.raises(ValueError):
        make_predictor(min_value=5., max_value=1.)
