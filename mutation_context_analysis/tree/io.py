"""I/O helpers for reading hierarchy reference tables.

Delimited text files are read with pandas; the separator is inferred from the
file suffix (``.tsv``/``.txt`` are tab separated, everything else is CSV).
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pandas as pd

from mutation_context_analysis.errors import SchemaError

METADATA_COLUMNS: tuple = ("feature", "parent_name", "leaf_span", "prob")
BACKGROUND_COLUMNS: tuple = ("feature", "prob")


def _separator_for(path: Path) -> str:
    return "\t" if path.suffix.lower() in {".tsv", ".txt"} else ","


def load_reference_table(
    path: str | Path,
    required_columns: Sequence[str] = METADATA_COLUMNS,
) -> pd.DataFrame:
    """Read a hierarchy metadata table.

    Parameters
    ----------
    path
        CSV or TSV file with one row per feature.
    required_columns
        Columns that must be present.

    Returns
    -------
    pd.DataFrame
        The table, with ``feature`` and ``parent_name`` read as strings.

    Raises
    ------
    SchemaError
        If required columns are missing.
    """
    path = Path(path)
    table = pd.read_csv(path, sep=_separator_for(path))
    missing = [c for c in required_columns if c not in table.columns]
    if missing:
        raise SchemaError(f"Reference table {path.name!r} is missing columns", missing)
    for column in ("feature", "parent_name"):
        if column in table.columns:
            ids = table[column]
            table[column] = ids.where(ids.isna(), ids.astype(str))
    return table


def load_background_probs(path: str | Path) -> pd.Series:
    """Read a ``feature``/``prob`` table into a float Series indexed by feature."""
    table = load_reference_table(path, required_columns=BACKGROUND_COLUMNS)
    return table.set_index("feature")["prob"].astype(float)


__all__ = ["load_reference_table", "load_background_probs"]
