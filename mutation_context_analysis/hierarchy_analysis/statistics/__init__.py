from .binomial_test import (
    BinomialTestResult,
    binomial_tail_p_value,
    binomial_tail_test,
    binomial_tail_test_batch,
)
from .multiple_testing import resolve_correction_factor
from .node_significance import annotate_binomial_significance

__all__ = [
    # Core statistics
    "BinomialTestResult",
    "binomial_tail_p_value",
    "binomial_tail_test",
    "binomial_tail_test_batch",
    "annotate_binomial_significance",
    # Multiple testing correction
    "resolve_correction_factor",
]
