"""Transfer submission, gas estimation and confirmation tracking."""

from walletsdk.transactions.gas import GasEstimate, GasEstimator
from walletsdk.transactions.tracker import EstimateResult, SendResult, TransactionTracker

__all__ = [
    "GasEstimate",
    "GasEstimator",
    "EstimateResult",
    "SendResult",
    "TransactionTracker",
]
