from .pipeline import ResolutionPipeline
from .sources import DirectorySource, MemorySource
from .types import Entry, MatchResult, NavigationIntent, Resolution

__all__ = [
    "DirectorySource",
    "Entry",
    "MatchResult",
    "MemorySource",
    "NavigationIntent",
    "Resolution",
    "ResolutionPipeline",
]
