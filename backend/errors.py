class ScoringError(Exception):
    """Base class for failures the scoring engine surfaces to callers."""


class VideoReadError(ScoringError, IOError):
    """A video could not be opened or its first frame could not be decoded."""


class DetectorUnavailableError(ScoringError, RuntimeError):
    """The pose landmark detector could not be initialized."""


class DescriptorMismatchError(ScoringError, ValueError):
    """Two descriptors or sequences of different dimensionality were compared."""
