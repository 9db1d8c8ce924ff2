"""Least-absolute-deviation solver for min ||A x - b||_1 using ADMM."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import scipy.linalg
import scipy.sparse
from scipy.sparse.linalg import splu


class L1SolverError(RuntimeError):
    """Raised when the normal equations of the problem cannot be factorised."""


@dataclass
class L1SolverOptions:
    max_num_iterations: int = 1000
    # Augmented Lagrangian parameter.
    rho: float = 1.0
    # Over-relaxation parameter, typically between 1.0 and 1.8.
    alpha: float = 1.0
    absolute_tolerance: float = 1e-4
    relative_tolerance: float = 1e-2


def _shrinkage(vec: np.ndarray, kappa: float) -> np.ndarray:
    return np.maximum(0.0, vec - kappa) - np.maximum(0.0, -vec - kappa)


class L1Solver:
    """ADMM solver for a fixed matrix A; A^T A is factorised once."""

    def __init__(self, options: L1SolverOptions, mat) -> None:
        self.options = options
        self._sparse = scipy.sparse.issparse(mat)
        if self._sparse:
            self._a = scipy.sparse.csr_matrix(mat, dtype=float)
        else:
            self._a = np.asarray(mat, dtype=float)
        self._solve_normal = self._factorise()

    def _factorise(self) -> Callable[[np.ndarray], np.ndarray]:
        a = self._a
        try:
            if self._sparse:
                lu = splu(scipy.sparse.csc_matrix(a.T @ a))
                return lu.solve
            factor = scipy.linalg.cho_factor(a.T @ a)
        except (RuntimeError, np.linalg.LinAlgError) as exc:
            raise L1SolverError(
                "could not factorise the normal equations of the L1 problem"
            ) from exc
        return lambda rhs: scipy.linalg.cho_solve(factor, rhs)

    def solve(self, rhs, initial: Optional[np.ndarray] = None) -> np.ndarray:
        """Return x approximately minimising ||A x - rhs||_1."""
        opts = self.options
        a = self._a
        rows, cols = a.shape
        b = np.asarray(rhs, dtype=float).reshape(rows)
        if initial is None:
            x = np.zeros(cols)
        else:
            x = np.array(initial, dtype=float).reshape(cols)

        z = np.zeros(rows)
        u = np.zeros(rows)
        rhs_norm = float(np.linalg.norm(b))
        primal_abs_eps = math.sqrt(rows) * opts.absolute_tolerance
        dual_abs_eps = math.sqrt(cols) * opts.absolute_tolerance

        for _ in range(opts.max_num_iterations):
            x = np.asarray(self._solve_normal(a.T @ (b + z - u))).reshape(cols)

            a_times_x = np.asarray(a @ x).reshape(rows)
            ax_hat = opts.alpha * a_times_x + (1.0 - opts.alpha) * (z + b)

            z_old = z
            z = _shrinkage(ax_hat - b + u, 1.0 / opts.rho)
            u = u + ax_hat - z - b

            r_norm = float(np.linalg.norm(a_times_x - z - b))
            s_norm = float(np.linalg.norm(-opts.rho * (a.T @ (z - z_old))))
            max_norm = max(float(np.linalg.norm(a_times_x)), float(np.linalg.norm(z)), rhs_norm)
            primal_eps = primal_abs_eps + opts.relative_tolerance * max_norm
            dual_eps = dual_abs_eps + opts.relative_tolerance * float(
                np.linalg.norm(opts.rho * (a.T @ u))
            )
            if r_norm < primal_eps and s_norm < dual_eps:
                break
        return x