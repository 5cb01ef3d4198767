#!/usr/bin/env python3
"""
Utility functions for logging and sparse rating matrix statistics.
"""

import logging
from typing import Optional, Union

import numpy as np
from scipy import sparse


def get_logger(
    log_level: Union[int, str] = logging.WARNING,
    obj: Optional[object] = None
) -> logging.Logger:
    """Get a logger named after the module and class of obj.

    Args:
        log_level: Logging level as int or name ('DEBUG', 'INFO', ...)
        obj: Instance whose class names the logger (package logger if None)

    Returns:
        Configured logger
    """
    name = 'graphnmf'
    if obj is not None:
        name = f'{obj.__class__.__module__}.{obj.__class__.__name__}'
    logger = logging.getLogger(name)
    if isinstance(log_level, str):
        log_level = log_level.upper()
    logger.setLevel(log_level)

    # Debug output is shown even when the caller configured no logging
    if logger.getEffectiveLevel() <= logging.DEBUG and \
            not logger.hasHandlers():
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def get_sparse_matrix_stats(matrix: sparse.spmatrix) -> dict:
    """ Get basic statistics about a sparse matrix."""
    matrix = sparse.coo_matrix(matrix)
    stats = {
        "shape": matrix.shape,
        "nnz": matrix.nnz,
        "density": matrix.nnz / max((matrix.shape[0] * matrix.shape[1]), 1),
        "empty_rows": matrix.shape[0]-len(np.unique(matrix.row)),
        "empty_cols": matrix.shape[1]-len(np.unique(matrix.col)),
    }
    return stats


def print_sparse_matrix_stats(matrix: sparse.spmatrix) -> str:
    """Returns compact stats about a sparse matrix in a single line."""
    stats = get_sparse_matrix_stats(matrix)
    print_str = (
        f"({stats['shape'][0]:6}x{stats['shape'][1]:6}) nnz={stats['nnz']:10,} "
        f"({stats['density']:5.3%}), "
        f"empty rows/cols={stats['empty_rows']:6}/{stats['empty_cols']:6}"
    )
    return print_str


def format_vector(values: np.ndarray, precision: int = 4) -> str:
    """Format a factor vector for debug output."""
    return np.array2string(
        np.asarray(values),
        precision=precision,
        separator=' ',
        max_line_width=120
    )
