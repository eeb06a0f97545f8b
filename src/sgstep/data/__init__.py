"""
sgstep.data
===========

submodule for handling observations fed to the log-likelihood.

Includes:
- dataset: Dataset container, minibatch sampling, minibatch size rules,
  and the DatasetLoader interface for external loaders.
"""

from .dataset import Dataset, DatasetLoader, resolve_minibatch_size, sample_minibatch

__all__ = ["Dataset", "DatasetLoader", "resolve_minibatch_size", "sample_minibatch"]
