"""Check that join keys identify one row each."""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from boundary_tools.utils.errors import DuplicateKeys


def count_key_values(frame: pd.DataFrame, keys: Sequence[str]) -> pd.DataFrame:
    """Return one row per distinct key combination with its row count in ``n``."""
    keys = list(keys)
    return frame[keys].groupby(keys, dropna=False).size().reset_index(name="n")


def check_for_uniqueness(frame: pd.DataFrame, keys: Sequence[str], label: str) -> pd.DataFrame:
    """Raise :class:`DuplicateKeys` when key values repeat in *frame*.

    A single duplicated key group is tolerated; two or more groups fail.

    Returns:
        The key counts from :func:`count_key_values`.
    """
    counts = count_key_values(frame, keys)
    duplicates = counts[counts["n"] > 1]
    if len(duplicates) > 1:
        raise DuplicateKeys(label, duplicates)
    return counts
