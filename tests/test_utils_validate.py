"""Tests for finitediffkit.utils.validate."""

import logging

import numpy as np
import pytest

from finitediffkit.backends import ListBackend, NumpyBackend
from finitediffkit.logger import logger_name
from finitediffkit.utils.validate import (
    check_index_pairs,
    check_same_length,
    warn_if_nonfinite,
)


@pytest.mark.parametrize("backend", [ListBackend(), NumpyBackend()])
def test_check_same_length_accepts_matching(backend):
    """Tests that equal lengths pass silently."""
    check_same_length(backend.copy([1.0, 2.0]), backend.copy([0.0, 1.0]), backend)


@pytest.mark.parametrize("backend", [ListBackend(), NumpyBackend()])
def test_check_same_length_rejects_mismatch(backend):
    """Tests that a direction of the wrong length raises ValueError."""
    with pytest.raises(ValueError, match="p must have length 2"):
        check_same_length(backend.copy([1.0, 2.0]), backend.copy([1.0]), backend)


def test_check_index_pairs_normalizes_and_deduplicates():
    """Tests that pairs are ordered (min, max) and duplicates dropped in first-seen order."""
    pairs = check_index_pairs([(3, 2), (1, 1), (2, 3), (3, 3), (1, 1)], 4)
    assert pairs == [(2, 3), (1, 1), (3, 3)]


def test_check_index_pairs_accepts_numpy_rows():
    """Tests that rows of an integer array are accepted as pairs."""
    assert check_index_pairs(np.array([[0, 1], [1, 0]]), 2) == [(0, 1)]


def test_check_index_pairs_rejects_out_of_range():
    """Tests that indices outside the parameter vector raise IndexError."""
    with pytest.raises(IndexError, match="index 4"):
        check_index_pairs([(0, 4)], 4)
    with pytest.raises(IndexError):
        check_index_pairs([(-1, 0)], 4)


def test_check_index_pairs_rejects_non_pairs():
    """Tests that entries that are not pairs raise ValueError."""
    with pytest.raises(ValueError, match="pairs"):
        check_index_pairs([(0, 1, 2)], 4)
    with pytest.raises(ValueError, match="pairs"):
        check_index_pairs([3], 4)


def test_warn_if_nonfinite_logs_warning(caplog):
    """Tests that a warning is logged for NaN or infinite entries."""
    with caplog.at_level(logging.WARNING, logger=logger_name):
        warn_if_nonfinite([[1.0, np.nan], [np.inf, 0.0]], "forward_hessian")
    assert "forward_hessian" in caplog.text
    assert "2 of 4" in caplog.text


def test_warn_if_nonfinite_silent_for_finite(caplog):
    """Tests that nothing is logged for finite values or empty input."""
    with caplog.at_level(logging.WARNING, logger=logger_name):
        warn_if_nonfinite(np.ones(3), "forward_diff")
        warn_if_nonfinite([], "forward_diff")
    assert caplog.records == []
