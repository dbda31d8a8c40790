"""Stage contracts for the correction pipeline.

Each ``assert_*`` function checks what a stage promised and raises
:class:`ContractViolation` when it did not deliver. Contracts stop the run;
they are not a recovery mechanism.
"""

from dispfix.contracts.base import ContractViolation, require
from dispfix.contracts.series import assert_time_ordered, assert_baseline_preserved
from dispfix.contracts.correction import (
    assert_corrections_well_formed,
    assert_within_bounds,
    assert_ledger_consistent,
)

__all__ = [
    "ContractViolation",
    "require",
    "assert_time_ordered",
    "assert_baseline_preserved",
    "assert_corrections_well_formed",
    "assert_within_bounds",
    "assert_ledger_consistent",
]
