"""
Token Directory

Background-refreshed snapshot of the whole token universe with local
search and similarity ranking.
"""

from .models import (
    FALLBACK_TOKEN_IDS,
    DirectoryCursor,
    SimilarToken,
    magnitude_ratio,
    similarity,
)
from .service import TokenDirectory

__all__ = [
    "FALLBACK_TOKEN_IDS",
    "DirectoryCursor",
    "SimilarToken",
    "TokenDirectory",
    "magnitude_ratio",
    "similarity",
]
