"""
Ingestion pipeline.

- wake:      coalescing wake signal
- tags:      tag reader chain (ID3, Vorbis comments)
- paths:     virtual path validation + directory resolution
- committer: album/artist/track inserts
- relocator: staging/permanent paths and the atomic rename
- staging:   writing uploads into the staging area
- scheduler: the long-lived rescan loop tying it together
"""

from tunecellar.ingest.scheduler import IngestResult, IngestScheduler, ScanSummary
from tunecellar.ingest.wake import WakeSignal

__all__ = [
    "IngestResult",
    "IngestScheduler",
    "ScanSummary",
    "WakeSignal",
]
