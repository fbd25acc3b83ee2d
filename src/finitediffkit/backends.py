"""Container backends for the differencing engine.

The engine never touches a container directly. Every read, write, copy and
allocation goes through a :class:`ContainerBackend`, so the same routines run
over plain Python lists and NumPy arrays alike.

Adding backends
---------------
New container types can be supported without modifying the engine by
calling ``register_backend`` (see example below).

Examples:
    Resolving the backend of a container:

        >>> import numpy as np
        >>> from finitediffkit.backends import backend_for
        >>> backend_for(np.zeros(3)).name
        'numpy'
        >>> backend_for([1.0, 2.0]).name
        'list'

    Registering a new backend:

        >>> from finitediffkit.backends import register_backend
        >>> from mypackage.vectors import MyVector, MyVectorBackend
        >>> register_backend(
        ...     name="myvector",
        ...     backend=MyVectorBackend(),
        ...     types=(MyVector,),
        ...     aliases=("my-vector", "mv"),
        ... )

Notes:
    - Backend names are case/spacing/punctuation insensitive.
    - For available canonical backend names at runtime, call
      ``available_backends()``.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Iterable, Mapping

import numpy as np
from numpy.typing import NDArray

__all__ = [
    "ContainerBackend",
    "ListBackend",
    "NumpyBackend",
    "register_backend",
    "resolve_backend",
    "backend_for",
    "available_backends",
]


class ContainerBackend(ABC):
    """Capability set the engine requires of a vector/matrix container.

    Subclasses implement the primitive operations (index access, length,
    allocation, copy). The derived operations at the bottom have generic
    implementations written in terms of the primitives and may be overridden
    with faster versions.
    """

    name: str = "abstract"

    @abstractmethod
    def length(self, v: Any) -> int:
        """Returns the number of entries of vector ``v``."""

    @abstractmethod
    def get(self, v: Any, i: int) -> float:
        """Returns entry ``i`` of vector ``v``."""

    @abstractmethod
    def set(self, v: Any, i: int, value: float) -> None:
        """Writes ``value`` into entry ``i`` of vector ``v``."""

    @abstractmethod
    def zeros(self, n: int) -> Any:
        """Returns a new zero vector of length ``n``."""

    @abstractmethod
    def copy(self, v: Any) -> Any:
        """Returns an independent float copy of vector ``v``."""

    @abstractmethod
    def as_vector(self, values: Any) -> Any:
        """Returns the output of a vector-valued callable as a fresh vector.

        The result must not alias ``values``; callables are allowed to return
        (views of) their input, which the engine mutates afterwards.
        """

    @abstractmethod
    def zeros_matrix(self, m: int, n: int) -> Any:
        """Returns a new ``m`` x ``n`` zero matrix."""

    @abstractmethod
    def matrix_shape(self, mat: Any) -> tuple[int, int]:
        """Returns ``(rows, cols)`` of ``mat``."""

    @abstractmethod
    def get_entry(self, mat: Any, i: int, j: int) -> float:
        """Returns entry ``(i, j)`` of ``mat``."""

    @abstractmethod
    def set_entry(self, mat: Any, i: int, j: int, value: float) -> None:
        """Writes ``value`` into entry ``(i, j)`` of ``mat``."""

    def axpy(self, x: Any, alpha: float, p: Any) -> Any:
        """Returns the new vector ``x + alpha * p``."""
        out = self.copy(x)
        for i in range(self.length(x)):
            self.set(out, i, self.get(x, i) + alpha * self.get(p, i))
        return out

    def difference_quotient(self, a: Any, b: Any, denom: float) -> Any:
        """Returns the new vector ``(a - b) / denom``."""
        n = self.length(a)
        out = self.zeros(n)
        for i in range(n):
            self.set(out, i, (self.get(a, i) - self.get(b, i)) / denom)
        return out

    def set_column(self, mat: Any, j: int, column: Any) -> None:
        """Writes vector ``column`` into column ``j`` of ``mat``."""
        for i in range(self.length(column)):
            self.set_entry(mat, i, j, self.get(column, i))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ListBackend(ContainerBackend):
    """Python lists of floats; matrices are lists of rows."""

    name = "list"

    def length(self, v: list[float]) -> int:
        return len(v)

    def get(self, v: list[float], i: int) -> float:
        return v[i]

    def set(self, v: list[float], i: int, value: float) -> None:
        v[i] = value

    def zeros(self, n: int) -> list[float]:
        return [0.0] * n

    def copy(self, v: Any) -> list[float]:
        return [float(a) for a in v]

    def as_vector(self, values: Any) -> list[float]:
        if np.ndim(values) == 0:
            return [float(values)]
        return [float(a) for a in values]

    def zeros_matrix(self, m: int, n: int) -> list[list[float]]:
        return [[0.0] * n for _ in range(m)]

    def matrix_shape(self, mat: list[list[float]]) -> tuple[int, int]:
        rows = len(mat)
        return rows, (len(mat[0]) if rows else 0)

    def get_entry(self, mat: list[list[float]], i: int, j: int) -> float:
        return mat[i][j]

    def set_entry(self, mat: list[list[float]], i: int, j: int, value: float) -> None:
        mat[i][j] = value


class NumpyBackend(ContainerBackend):
    """One-dimensional float64 arrays; matrices are two-dimensional arrays.

    Derived operations are vectorized.
    """

    name = "numpy"

    def length(self, v: NDArray[np.float64]) -> int:
        return int(v.shape[0])

    def get(self, v: NDArray[np.float64], i: int) -> float:
        return float(v[i])

    def set(self, v: NDArray[np.float64], i: int, value: float) -> None:
        v[i] = value

    def zeros(self, n: int) -> NDArray[np.float64]:
        return np.zeros(n, dtype=np.float64)

    def copy(self, v: Any) -> NDArray[np.float64]:
        return np.array(v, dtype=np.float64).reshape(-1)

    def as_vector(self, values: Any) -> NDArray[np.float64]:
        return np.array(values, dtype=np.float64).reshape(-1)

    def zeros_matrix(self, m: int, n: int) -> NDArray[np.float64]:
        return np.zeros((m, n), dtype=np.float64)

    def matrix_shape(self, mat: NDArray[np.float64]) -> tuple[int, int]:
        if mat.ndim != 2:
            raise ValueError(f"matrix must be 2D; got ndim={mat.ndim}.")
        return int(mat.shape[0]), int(mat.shape[1])

    def get_entry(self, mat: NDArray[np.float64], i: int, j: int) -> float:
        return float(mat[i, j])

    def set_entry(self, mat: NDArray[np.float64], i: int, j: int, value: float) -> None:
        mat[i, j] = value

    def axpy(self, x: Any, alpha: float, p: Any) -> NDArray[np.float64]:
        return np.asarray(x, dtype=np.float64) + alpha * np.asarray(p, dtype=np.float64)

    def difference_quotient(self, a: Any, b: Any, denom: float) -> NDArray[np.float64]:
        return (np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)) / denom

    def set_column(self, mat: NDArray[np.float64], j: int, column: Any) -> None:
        mat[:, j] = column


# Built-in backends: (canonical name, instance, container types, aliases).
_BACKEND_SPECS: list[tuple[str, ContainerBackend, tuple[type, ...], list[str]]] = [
    ("numpy", NumpyBackend(), (np.ndarray,), ["ndarray", "np", "array"]),
    ("list", ListBackend(), (list, tuple), ["python", "vec", "sequence"]),
]


def _norm(s: str) -> str:
    """Normalizes a backend name for robust matching.

    Args:
        s: Input string.

    Returns:
        Lowercase string with all non-alphanumeric characters removed.
    """
    return re.sub(r"[^a-z0-9]+", "", s.lower())


@lru_cache(maxsize=1)
def _backend_maps() -> tuple[
    Mapping[str, ContainerBackend],
    Mapping[type, ContainerBackend],
    tuple[str, ...],
]:
    """Constructs and caches the backend lookup tables.

    Later registrations win over earlier ones for the same name or type.
    ``register_backend`` clears the cache.

    Returns:
        A tuple ``(name_map, type_map, canonical_names)``.
    """
    name_map: dict[str, ContainerBackend] = {}
    type_map: dict[type, ContainerBackend] = {}
    canonical: set[str] = set()
    for name, backend, types, aliases in _BACKEND_SPECS:
        k = _norm(name)
        name_map[k] = backend
        canonical.add(k)
        for a in aliases:
            name_map[_norm(a)] = backend
        for t in types:
            type_map[t] = backend
    return name_map, type_map, tuple(sorted(canonical))


def register_backend(
    name: str,
    backend: ContainerBackend,
    *,
    types: Iterable[type] = (),
    aliases: Iterable[str] = (),
) -> None:
    """Registers a new container backend.

    Args:
        name: Canonical public name of the backend.
        backend: Instance implementing :class:`ContainerBackend`.
        types: Container types that should resolve to this backend in
            :func:`backend_for`.
        aliases: Additional accepted spellings of ``name``.

    Raises:
        TypeError: If ``backend`` is not a :class:`ContainerBackend`.
    """
    if not isinstance(backend, ContainerBackend):
        raise TypeError(
            f"backend must be a ContainerBackend instance; got {type(backend).__name__}."
        )
    _BACKEND_SPECS.append((name, backend, tuple(types), list(aliases)))
    _backend_maps.cache_clear()


def resolve_backend(backend: str | ContainerBackend) -> ContainerBackend:
    """Resolves a backend name or alias (or an instance) to a backend.

    Args:
        backend: Backend name/alias, or a backend instance which is returned as is.

    Returns:
        The matching backend instance.

    Raises:
        ValueError: If the name is not registered.
    """
    if isinstance(backend, ContainerBackend):
        return backend
    name_map, _, canon = _backend_maps()
    try:
        return name_map[_norm(backend)]
    except KeyError:
        opts = ", ".join(canon)
        raise ValueError(f"Unknown container backend '{backend}'. Choose one of {{{opts}}}.") from None


def backend_for(x: Any) -> ContainerBackend:
    """Returns the backend registered for the container type of ``x``.

    Subclasses of a registered type resolve to the same backend.

    Args:
        x: A parameter vector.

    Returns:
        The matching backend instance.

    Raises:
        TypeError: If no backend is registered for ``type(x)``.
    """
    _, type_map, _ = _backend_maps()
    for t in type(x).__mro__:
        if t in type_map:
            return type_map[t]
    raise TypeError(
        f"No container backend registered for type {type(x).__name__}; "
        "pass backend=... or call register_backend()."
    )


def available_backends() -> list[str]:
    """Lists canonical backend names.

    Returns:
        List of backend names.
    """
    _, _, canon = _backend_maps()
    return list(canon)
