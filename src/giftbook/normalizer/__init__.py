"""
Transaction normalization.

Accepts either a pre-normalized transaction list or a raw provider payload
and produces canonical NormalizedTransactions.
"""

from .fields import FieldChain, FieldExtractor, KeyExtractor
from .provider import ProviderPayloadNormalizer, locate_rows
from .router import NormalizationResult, NormalizationSource, TransactionNormalizer

__all__ = [
    "FieldChain",
    "FieldExtractor",
    "KeyExtractor",
    "ProviderPayloadNormalizer",
    "locate_rows",
    "NormalizationResult",
    "NormalizationSource",
    "TransactionNormalizer",
]
