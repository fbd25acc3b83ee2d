"""Tests for finitediffkit.utils.concurrency."""

from __future__ import annotations

import threading

import pytest

from finitediffkit.utils import concurrency as conc


def _reset_workers_var() -> None:
    """Reset the contextvar to its default before each test that needs it."""
    conc._workers_var.set(None)


@pytest.mark.parametrize(
    "value, expected",
    [(3, 3), ("4", 4), (2.9, 2), (0, 1), (-5, 1), (None, 1), ("junk", 1)],
)
def test_normalize_workers(value, expected):
    """normalize_workers should coerce any input to a positive integer."""
    assert conc.normalize_workers(value) == expected


def test_set_default_workers_updates_module_default():
    """set_default_workers should change what resolve_workers returns."""
    _reset_workers_var()
    conc.set_default_workers(3)
    assert conc._DEFAULT_WORKERS == 3
    assert conc.resolve_workers() == 3

    conc.set_default_workers(None)
    assert conc.resolve_workers() == 1


def test_use_workers_context_manager_restores_previous():
    """Context manager should temporarily set the value and restore it on exit."""
    _reset_workers_var()
    prev = conc._workers_var.get()

    with conc.use_workers(5) as returned_prev:
        assert returned_prev == prev
        assert conc._workers_var.get() == 5

    assert conc._workers_var.get() == prev


def test_resolve_workers_precedence(monkeypatch):
    """Precedence: explicit argument > context > module default."""
    _reset_workers_var()
    monkeypatch.setattr(conc, "_DEFAULT_WORKERS", 2)
    assert conc.resolve_workers() == 2

    with conc.use_workers(6):
        assert conc.resolve_workers() == 6
        assert conc.resolve_workers(3) == 3
        with conc.use_workers(None):
            assert conc.resolve_workers() == 2


def test_parallel_execute_sequential_preserves_order():
    """With one worker, tasks run inline and in order."""
    calls = []

    def worker(x, y):
        calls.append(x)
        return x + y

    out = conc.parallel_execute(worker, [(1, 10), (2, 20), (3, 30)])
    assert out == [11, 22, 33]
    assert calls == [1, 2, 3]


@pytest.mark.parallel
def test_parallel_execute_threaded_preserves_order_and_pins_workers(extra_threads_ok):
    """In the thread pool, results keep task order and nested calls see one worker."""
    if not extra_threads_ok:
        pytest.skip("cannot spawn threads")
    _reset_workers_var()

    def worker(x):
        return x, conc.resolve_workers(), threading.get_ident()

    results = conc.parallel_execute(worker, [(i,) for i in range(6)], outer_workers=3)

    assert [r[0] for r in results] == list(range(6))
    assert all(r[1] == 1 for r in results)
    assert conc._workers_var.get() is None


@pytest.mark.parallel
def test_parallel_execute_propagates_worker_exceptions(extra_threads_ok):
    """Exceptions raised in a task are re-raised to the caller."""
    if not extra_threads_ok:
        pytest.skip("cannot spawn threads")

    def worker(x):
        if x == 2:
            raise ValueError("task 2 failed")
        return x

    with pytest.raises(ValueError, match="task 2 failed"):
        conc.parallel_execute(worker, [(1,), (2,), (3,)], outer_workers=2)
