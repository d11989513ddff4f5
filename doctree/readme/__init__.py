"""README cross-referencing against the summary cache."""

from .crossref import (
    MODE_GENERATE,
    MODE_VALIDATE,
    CrossReferenceReport,
    ReadmeCrossReferencer,
    StaleLine,
)
from .skeleton import ReadmeSkeleton

__all__ = [
    "CrossReferenceReport",
    "MODE_GENERATE",
    "MODE_VALIDATE",
    "ReadmeCrossReferencer",
    "ReadmeSkeleton",
    "StaleLine",
]
