"""
Tests for the dense linear algebra helpers used by LinUCB.
"""

import numpy as np
import pytest

from models.linear_algebra import (add_matrix, add_vector, dot, identity, invert,
                                   multiply_matrix_vector, outer_product, quadratic_form)


def test_identity():
    assert np.array_equal(identity(3), np.eye(3))


def test_dot_and_shape_mismatch():
    assert dot([1.0, 2.0, 3.0], [4.0, 5.0, 6.0]) == 32.0
    with pytest.raises(ValueError):
        dot([1.0, 2.0], [1.0, 2.0, 3.0])


def test_outer_product():
    result = outer_product([1.0, 2.0], [3.0, 4.0])
    assert np.array_equal(result, np.array([[3.0, 4.0], [6.0, 8.0]]))


def test_add_helpers_do_not_mutate_inputs():
    a = np.ones((2, 2))
    b = np.eye(2)
    result = add_matrix(a, b)
    assert np.array_equal(result, np.array([[2.0, 1.0], [1.0, 2.0]]))
    assert np.array_equal(a, np.ones((2, 2)))

    v = np.zeros(2)
    assert np.array_equal(add_vector(v, [1.0, 2.0]), np.array([1.0, 2.0]))
    assert np.array_equal(v, np.zeros(2))

    with pytest.raises(ValueError):
        add_matrix(np.ones((2, 2)), np.ones((3, 3)))


def test_multiply_matrix_vector_and_quadratic_form():
    m = np.array([[2.0, 0.0], [1.0, 3.0]])
    assert np.array_equal(multiply_matrix_vector(m, [1.0, 1.0]), np.array([2.0, 4.0]))
    assert quadratic_form([1.0, 1.0], m) == 6.0
    with pytest.raises(ValueError):
        multiply_matrix_vector(m, [1.0, 2.0, 3.0])


def test_invert_identity():
    assert np.allclose(invert(identity(20)), np.eye(20))


def test_invert_requires_row_swap():
    m = np.array([[0.0, 1.0], [2.0, 0.0]])
    assert np.allclose(invert(m), np.array([[0.0, 0.5], [1.0, 0.0]]))


def test_invert_random_spd_matrices():
    rng = np.random.default_rng(7)
    for _ in range(10):
        x = rng.normal(size=(20, 20))
        spd = x @ x.T + np.eye(20)
        inverse = invert(spd)
        assert np.allclose(spd @ inverse, np.eye(20), atol=1e-6)


def test_invert_does_not_mutate_input():
    m = np.array([[4.0, 1.0], [1.0, 3.0]])
    original = m.copy()
    invert(m)
    assert np.array_equal(m, original)


def test_invert_singular_matrix_skips_column():
    m = np.array([[1.0, 0.0], [0.0, 0.0]])
    result = invert(m)
    assert np.all(np.isfinite(result))
    assert result[0, 0] == pytest.approx(1.0)
    assert result[1, 1] == pytest.approx(1.0)


def test_invert_rejects_non_square():
    with pytest.raises(ValueError):
        invert(np.ones((2, 3)))
