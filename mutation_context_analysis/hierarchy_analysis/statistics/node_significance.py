from __future__ import annotations

import pandas as pd

from mutation_context_analysis import config
from .binomial_test import binomial_tail_test_batch

REQUIRED_TEST_COLUMNS: tuple = ("feature", "q", "size", "prob")


def annotate_binomial_significance(
    test_table: pd.DataFrame,
    significance_level_alpha: float = config.SIGNIFICANCE_ALPHA,
    correction_factor: float = config.CORRECTION_FACTOR,
) -> pd.DataFrame:
    """Annotate every (feature, ancestor) row with its binomial tail test.

    Parameters
    ----------
    test_table
        Table produced by
        :func:`~mutation_context_analysis.hierarchy_analysis.hierarchy_builder.build_test_table`
        with columns ``feature``, ``q``, ``size`` and ``prob``.
    significance_level_alpha
        Threshold applied to the corrected p-values.
    correction_factor
        Multiplicative correction applied to every p-value.

    Returns
    -------
    pd.DataFrame
        Copy of the input augmented with columns:
        - p_value: raw upper-tail binomial p-value
        - p_value_corrected: ``p_value * correction_factor``
        - significant: boolean, True if ``p_value_corrected < alpha``
    """
    missing = [c for c in REQUIRED_TEST_COLUMNS if c not in test_table.columns]
    if missing:
        raise KeyError(f"Missing required columns in test table: {missing}.")

    annotated = test_table.copy()
    p_values, corrected, significant = binomial_tail_test_batch(
        annotated["q"].to_numpy(),
        annotated["size"].to_numpy(),
        annotated["prob"].to_numpy(),
        alpha=significance_level_alpha,
        correction_factor=correction_factor,
        features=annotated["feature"].tolist(),
    )
    annotated["p_value"] = p_values
    annotated["p_value_corrected"] = corrected
    annotated["significant"] = significant
    return annotated


__all__ = ["annotate_binomial_significance"]
