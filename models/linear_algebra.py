"""
Dense linear algebra helpers for the LinUCB model.

Every function is pure: inputs are never modified and new arrays are returned.
"""

import numpy as np

PIVOT_EPSILON = 1e-10


def identity(size: int) -> np.ndarray:
    """Square identity matrix of the given size."""
    return np.eye(size, dtype=float)


def dot(a: np.ndarray, b: np.ndarray) -> float:
    """Inner product of two vectors of equal length."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Vector shapes differ: {a.shape} vs {b.shape}")
    return float(a @ b)


def outer_product(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.outer(np.asarray(a, dtype=float), np.asarray(b, dtype=float))


def add_matrix(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Matrix shapes differ: {a.shape} vs {b.shape}")
    return a + b


def add_vector(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Vector shapes differ: {a.shape} vs {b.shape}")
    return a + b


def multiply_matrix_vector(matrix: np.ndarray, vector: np.ndarray) -> np.ndarray:
    matrix = np.asarray(matrix, dtype=float)
    vector = np.asarray(vector, dtype=float)
    if matrix.ndim != 2 or matrix.shape[1] != vector.shape[0]:
        raise ValueError(f"Cannot multiply {matrix.shape} matrix by {vector.shape} vector")
    return matrix @ vector


def quadratic_form(vector: np.ndarray, matrix: np.ndarray) -> float:
    """xᵀ·M·x"""
    return dot(vector, multiply_matrix_vector(matrix, vector))


def invert(matrix: np.ndarray, epsilon: float = PIVOT_EPSILON) -> np.ndarray:
    """
    Invert a square matrix by Gauss-Jordan elimination on [M | I].

    Partial pivoting picks the remaining row with the largest absolute value
    in the current column. When that pivot is below ``epsilon`` the column is
    left uneliminated instead of dividing by a near-zero value, so a singular
    input yields an approximate (not pseudo-) inverse rather than an error.

    Args:
        matrix: Square matrix to invert
        epsilon: Smallest pivot magnitude that is still eliminated

    Returns:
        The inverse (or its approximation for degenerate input)
    """
    a = np.array(matrix, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"Cannot invert non-square matrix of shape {a.shape}")

    n = a.shape[0]
    augmented = np.hstack([a, np.eye(n)])

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(augmented[col:, col])))
        if abs(augmented[pivot_row, col]) < epsilon:
            continue

        if pivot_row != col:
            augmented[[col, pivot_row]] = augmented[[pivot_row, col]]

        augmented[col] = augmented[col] / augmented[col, col]

        factors = augmented[:, col].copy()
        factors[col] = 0.0
        augmented -= np.outer(factors, augmented[col])

    return augmented[:, n:]
