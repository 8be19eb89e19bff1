"""ctxexpand - adaptive context expansion for knowledge-graph search results."""

__version__ = "0.1.0"
