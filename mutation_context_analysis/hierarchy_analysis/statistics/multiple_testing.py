"""Multiplicity correction for the hierarchical binomial tests.

Every p-value of a selection, including the residual re-tests, is multiplied
by the same factor. The default ``"fixed"`` method uses a configured constant
(150) independent of how many rows are actually tested; ``"bonferroni"``
instead uses the number of rows in the test table, which changes results on
real data and has to be asked for explicitly.
"""

from __future__ import annotations

from mutation_context_analysis import config

CORRECTION_METHODS: tuple = ("fixed", "bonferroni")


def resolve_correction_factor(
    method: str = config.CORRECTION_METHOD,
    n_tests: int | None = None,
    correction_factor: float = config.CORRECTION_FACTOR,
) -> float:
    """Return the multiplicative correction factor for a selection run.

    Parameters
    ----------
    method
        ``"fixed"`` (default) returns ``correction_factor``; ``"bonferroni"``
        returns ``n_tests``.
    n_tests
        Number of hypotheses in the test table. Required for ``"bonferroni"``.
    correction_factor
        The fixed factor.

    Raises
    ------
    ValueError
        Unknown method, missing ``n_tests`` or a non-positive factor.
    """
    if method == "fixed":
        factor = float(correction_factor)
    elif method == "bonferroni":
        if n_tests is None:
            raise ValueError("n_tests is required for method='bonferroni'")
        factor = float(n_tests)
    else:
        raise ValueError(
            f"Unknown correction method: {method!r}. "
            f"Supported methods: {', '.join(map(repr, CORRECTION_METHODS))}"
        )
    if factor <= 0:
        raise ValueError(f"Correction factor must be positive, got {factor!r}")
    return factor


__all__ = ["resolve_correction_factor", "CORRECTION_METHODS"]
