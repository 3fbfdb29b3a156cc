"""ctxkb — semantic knowledge base over uploaded PDFs and images."""

__version__ = "0.1.0"
