"""
model
=====

The probabilistic model as seen by the samplers.

This subpackage provides:
- LogPosterior : minibatch log-posterior estimate built from a user
  log-likelihood and log-prior, with plain and control-variate gradient
  estimators.
- flat_log_prior : default improper uniform prior.
"""

from .log_posterior import GradientEstimator, LogPosterior, flat_log_prior

__all__ = ["LogPosterior", "GradientEstimator", "flat_log_prior"]
