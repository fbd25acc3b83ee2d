"""Perturbation groups for grouped (sparse) Jacobian differencing.

A :class:`PerturbationVector` describes one function evaluation: which input
indices are perturbed together, and which output indices each of them
affects. A sequence of them (``PerturbationVectors``), one per color, lets
the grouped Jacobian routines fill a sparse Jacobian in ``k + 1`` (forward)
or ``2k`` (central) evaluations instead of ``n + 1`` or ``2n``.

Computing the grouping itself (graph coloring) is up to the caller.

Typical usage:

>>> from finitediffkit.perturbation import PerturbationVector
>>> pert = [
...     PerturbationVector().add(0, [0, 1]).add(3, [2, 3, 4]),
...     PerturbationVector().add(1, [0, 1, 2]).add(4, [3, 4, 5]),
...     PerturbationVector().add(2, [1, 2, 3]).add(5, [4, 5]),
... ]
>>> pert[0].x_idx
(0, 3)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from types import MappingProxyType
from typing import TypeAlias

import numpy as np

__all__ = [
    "PerturbationVector",
    "PerturbationVectors",
    "validate_perturbation_vectors",
    "perturbation_vectors_from_groups",
]


def _as_index(value, what: str) -> int:
    """Returns ``value`` as a non-negative int index."""
    if not isinstance(value, (int, np.integer)) or isinstance(value, bool):
        raise TypeError(f"{what} must be an integer; got {type(value).__name__}.")
    i = int(value)
    if i < 0:
        raise IndexError(f"{what} must be non-negative; got {i}.")
    return i


class PerturbationVector:
    """One evaluation group: perturbed input index -> affected output indices.

    Entries are accumulated with chained :meth:`add` calls and frozen into an
    immutable mapping by :meth:`freeze`. The grouped Jacobian routines freeze
    every group they receive.

    Inputs that share a group must affect disjoint sets of outputs. This is
    trusted, not checked, unless :func:`validate_perturbation_vectors` is used.
    """

    __slots__ = ("_entries", "_frozen")

    def __init__(self) -> None:
        self._entries: dict[int, tuple[int, ...]] = {}
        self._frozen = False

    def add(self, x_idx: int, r_idx: Iterable[int]) -> "PerturbationVector":
        """Records that perturbing input ``x_idx`` affects outputs ``r_idx``.

        Adding an input index twice merges the output indices.

        Args:
            x_idx: Index of the perturbed input.
            r_idx: Indices of the outputs affected by ``x_idx``.

        Returns:
            The same builder, to allow chaining.

        Raises:
            RuntimeError: If the group has been frozen.
            IndexError: If an index is negative.
            TypeError: If an index is not an integer.
        """
        if self._frozen:
            raise RuntimeError("PerturbationVector is frozen; build a new one instead.")
        i = _as_index(x_idx, "x_idx")
        rows = tuple(_as_index(r, "r_idx entry") for r in r_idx)
        self._entries[i] = tuple(dict.fromkeys(self._entries.get(i, ()) + rows))
        return self

    def freeze(self) -> "PerturbationVector":
        """Makes the group immutable and returns it."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        """Whether :meth:`add` is still allowed."""
        return self._frozen

    @property
    def mapping(self) -> Mapping[int, tuple[int, ...]]:
        """Read-only view of the ``input -> outputs`` mapping."""
        return MappingProxyType(self._entries)

    @property
    def x_idx(self) -> tuple[int, ...]:
        """Perturbed input indices, in insertion order."""
        return tuple(self._entries)

    @property
    def r_idx(self) -> tuple[tuple[int, ...], ...]:
        """Affected output indices, aligned with :attr:`x_idx`."""
        return tuple(self._entries.values())

    def items(self) -> Iterator[tuple[int, tuple[int, ...]]]:
        """Iterates over ``(input index, output indices)`` pairs."""
        return iter(self._entries.items())

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PerturbationVector):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        body = ", ".join(f"{i}: {list(r)}" for i, r in self._entries.items())
        return f"PerturbationVector({{{body}}})"


PerturbationVectors: TypeAlias = Sequence[PerturbationVector]


def validate_perturbation_vectors(
    pert: PerturbationVectors,
    n_inputs: int,
    n_outputs: int | None = None,
) -> None:
    """Checks that a grouping can be decoded without aliasing.

    Args:
        pert: The grouping to check.
        n_inputs: Length of the parameter vector.
        n_outputs: Length of the function output. Output indices are only
            range-checked when given.

    Raises:
        IndexError: If an input or output index is out of range.
        ValueError: If two inputs of the same group affect a shared output.
    """
    for g, group in enumerate(pert):
        owner: dict[int, int] = {}
        for i, rows in group.items():
            if i >= n_inputs:
                raise IndexError(
                    f"Group {g}: input index {i} out of bounds for size {n_inputs}."
                )
            for r in rows:
                if n_outputs is not None and r >= n_outputs:
                    raise IndexError(
                        f"Group {g}: output index {r} out of bounds for size {n_outputs}."
                    )
                if r in owner and owner[r] != i:
                    raise ValueError(
                        f"Group {g}: inputs {owner[r]} and {i} both affect output {r}; "
                        "their differences cannot be separated in one evaluation."
                    )
                owner[r] = i


def perturbation_vectors_from_groups(
    groups: Sequence[int],
    sparsity: Mapping[int, Iterable[int]] | Sequence[Iterable[int]],
) -> list[PerturbationVector]:
    """Packs a precomputed column coloring into perturbation groups.

    Args:
        groups: ``groups[i]`` is the color of input ``i``. Colors are
            renumbered densely in order of first appearance.
        sparsity: For each input index, the output indices it affects. Either
            a mapping or a sequence indexed by input.

    Returns:
        One frozen :class:`PerturbationVector` per color.

    Raises:
        ValueError: If ``sparsity`` does not cover every input.
    """
    if isinstance(sparsity, Mapping):
        lookup = dict(sparsity)
    else:
        lookup = dict(enumerate(sparsity))
    missing = [i for i in range(len(groups)) if i not in lookup]
    if missing:
        raise ValueError(f"sparsity has no entry for inputs {missing}.")

    order: dict[int, PerturbationVector] = {}
    for i, color in enumerate(groups):
        key = int(color)
        order.setdefault(key, PerturbationVector()).add(i, lookup[i])
    return [pv.freeze() for pv in order.values()]
