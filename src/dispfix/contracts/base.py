"""Contract exception and the single enforcement helper.

Stage contracts guard the guarantees one stage hands to the next:

- series: orderable epochs are sorted and epoch 0 is never rewritten
- correction: edits are well formed and stay within the configured limits
- ledger: every applied correction has exactly one audit record

Data problems are reported as ``ValidationResult`` objects and config errors
are rejected by pydantic. A :class:`ContractViolation` is neither: it means
the correction code itself is wrong, so it is never caught and converted
into a per-point failure.
"""


class ContractViolation(RuntimeError):
    """A pipeline stage broke one of its guarantees."""


def require(condition: bool, message: str) -> None:
    """Raise :class:`ContractViolation` with ``message`` unless ``condition`` holds.

    Examples
    --------
    >>> require(point.has_periods, f"Series contract violated: {name!r} has no epochs")
    """
    if not condition:
        raise ContractViolation(message)
