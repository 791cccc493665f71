"""Resource model and resolution engine for media authoring/playback projects."""

__version__ = "0.1.0"
