from .batch_validator import (
    BatchRejectionReason,
    BatchRelation,
    BatchValidation,
    BatchValidator,
)
from .contiguous_prefix import contiguous_prefix

__all__ = [
    "BatchRejectionReason",
    "BatchRelation",
    "BatchValidation",
    "BatchValidator",
    "contiguous_prefix",
]
