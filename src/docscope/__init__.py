"""DocScope - scoped document extraction for remote file stores."""

__version__ = "0.1.0"
