"""Audio concatenation jobs: staging, transcoding and cleanup."""
from .downloader import SegmentDownloader
from .models import Failed, Job, JobState, Segment, Succeeded, TransformResult, segment_order_key
from .service import ConcatenationService
from .stager import FileStager
from .storage import InMemoryStorage, LocalStorage, WorkspaceStorage
from .transcoder import FfmpegInvoker, TransformInvoker, TransformObserver

__all__ = [
    "ConcatenationService",
    "Failed",
    "FfmpegInvoker",
    "FileStager",
    "InMemoryStorage",
    "Job",
    "JobState",
    "LocalStorage",
    "Segment",
    "SegmentDownloader",
    "Succeeded",
    "TransformInvoker",
    "TransformObserver",
    "TransformResult",
    "WorkspaceStorage",
    "segment_order_key",
]
