"""Custom Exceptions for the ChunkSub application."""

from typing import Optional, Sequence


class ChunkSubError(Exception):
    """Base class for exceptions in this module."""
    pass

class ConfigurationError(ChunkSubError):
    """Exception raised for errors in configuration loading."""
    pass

class FileSystemError(ChunkSubError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass

class ProbeError(ChunkSubError):
    """Exception raised when ffprobe cannot report a duration or video height."""
    pass

class ExtractError(ChunkSubError):
    """Exception raised when a time range cannot be extracted from the source media."""
    pass

class BurnError(ChunkSubError):
    """Exception raised when ffmpeg fails to burn subtitles into a video."""
    pass

class SubprocessTimeout(ChunkSubError):
    """Exception raised when an external tool runs longer than its timeout."""

    def __init__(self, cmd: Sequence[str], timeout: float):
        self.cmd = list(cmd)
        self.timeout = timeout
        tool = self.cmd[0] if self.cmd else "subprocess"
        super().__init__(f"{tool} did not finish within {timeout:.1f}s")

class PipelineCancelled(ChunkSubError):
    """Raised when the driving context cancels a running job."""
    pass

class TranscriptionError(ChunkSubError):
    """Exception raised for errors during transcription."""
    pass

class ChunkTranscriptionError(TranscriptionError):
    """Transcription of one chunk failed; the whole stitch is aborted."""

    def __init__(self, chunk_index: int, message: Optional[str] = None):
        self.chunk_index = chunk_index
        super().__init__(message or f"Transcription failed for chunk {chunk_index}")

class TranscriptionTimeout(ChunkTranscriptionError):
    """A chunk's transcription call exceeded the caller-supplied timeout."""

    def __init__(self, chunk_index: int, timeout: float):
        self.timeout = timeout
        super().__init__(chunk_index, f"Transcription of chunk {chunk_index} timed out after {timeout:.1f}s")

class TranslationError(ChunkSubError):
    """Exception raised for errors during translation."""
    pass

class FormattingError(ChunkSubError):
    """Exception raised for errors during subtitle formatting."""
    pass

class MalformedTimecode(FormattingError):
    """Exception raised when a string is not a HH:MM:SS,mmm time code."""
    pass

class EmptyRenderError(FormattingError):
    """No transcript line survived language filtering, so there is nothing to render."""
    pass
