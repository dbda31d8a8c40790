"""`dispfix` - validation and correction of displacement-monitoring series.

Subpackages:
- core: Tolerance arithmetic and data model
- monitoring: Loading, grouping, validation, correction, ledger, writing
- pipeline: Orchestrator and batch processor
- schemas: Layered pydantic configuration
- contracts: Stage invariants
"""

__version__ = "0.1.0"
