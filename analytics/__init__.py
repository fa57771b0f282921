"""Quality and model-cost analytics for annotation batches.

Provides:
    - ModelUsageLedger: Per-(model, provider) usage, cost and latency counters
    - QualityAssessor: Structural quality scoring and QA review workflow
    - estimate_cost: Token-based cost estimate for backends without billing data
"""

from .quality import QualityAssessor
from .usage_ledger import ModelUsageLedger, estimate_cost

__all__ = [
    "ModelUsageLedger",
    "QualityAssessor",
    "estimate_cost",
]
