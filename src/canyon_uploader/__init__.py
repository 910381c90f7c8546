"""canyon-uploader: merge coverage reports and upload them to Canyon."""

__version__ = "0.1.0"
