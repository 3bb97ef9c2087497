"""docbatch - concurrent document conversion batches with failure recovery."""

__version__ = "0.1.0"
