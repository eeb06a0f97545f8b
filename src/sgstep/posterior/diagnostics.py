"""
diagnostics.py
--------------

Posterior diagnostics.

Two kinds of tools live here:

Held-out diagnostics (used by the StepLoopDriver at its report cadence)
- log_predictive_density(log_lik): builds a pure Diagnostic
  ``(params, held_out) -> float``, the average held-out log-likelihood
  per observation.

Chain diagnostics (for batch-style chains)
- effective_sample_size: autocorrelation-based ESS per element.
- rhat: Gelman-Rubin potential scale reduction across chains.
- chain_summary / print_chain_summary: mean, std, quantiles and ESS
  per parameter.

Examples
--------
>>> diagnostic = log_predictive_density(log_lik)
>>> diagnostic(params, held_out)
-0.6931
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Callable

import jax.numpy as jnp
import numpy as np

from sgstep.data.dataset import Dataset

Params = dict[str, jnp.ndarray]
Diagnostic = Callable[[Params, Any], float]


# ----------------------------------------------------------------------
# Held-out diagnostics
# ----------------------------------------------------------------------
def log_predictive_density(
    log_lik: Callable[[Params, dict[str, jnp.ndarray]], Any],
) -> Diagnostic:
    """
    Build a held-out log-likelihood diagnostic.

    Parameters
    ----------
    log_lik : callable
        The same ``log_lik(params, minibatch)`` used for sampling (summed
        over rows).

    Returns
    -------
    callable
        ``diagnostic(params, held_out) -> float``: mean log-likelihood per
        held-out row. Pure: no state, no randomness.
    """

    def diagnostic(params: Params, held_out: Dataset | Mapping[str, Any]) -> float:
        data = held_out if isinstance(held_out, Dataset) else Dataset(held_out)
        return float(log_lik(params, data.arrays)) / len(data)

    return diagnostic


# ----------------------------------------------------------------------
# Chain diagnostics
# ----------------------------------------------------------------------
def _autocorrelation(x: np.ndarray) -> np.ndarray:
    """Normalised autocorrelation of each column of ``x`` (shape (n, k))."""
    n = x.shape[0]
    centred = x - x.mean(axis=0)
    n_fft = 1 << (2 * n - 1).bit_length()
    spectrum = np.fft.rfft(centred, n=n_fft, axis=0)
    acov = np.fft.irfft(spectrum * np.conj(spectrum), n=n_fft, axis=0)[:n] / n
    with np.errstate(invalid="ignore", divide="ignore"):
        return acov / acov[0]


def effective_sample_size(samples: jnp.ndarray | np.ndarray) -> np.ndarray:
    """
    Estimate effective sample size (ESS) to calculate the number of independent
    samples that a correlated MCMC chain is equivalent to.

    Parameters
    ----------
    samples : array
        Chain, shape (n_samples, ...).

    Returns
    -------
    np.ndarray
        ESS per element, shape ``samples.shape[1:]``.

    Notes
    -----
    Uses Geyer's initial positive sequence: autocorrelations are summed in
    consecutive pairs while the pair sums stay positive. Constant chains
    (zero variance) report ESS = n.
    """
    x = np.asarray(samples, dtype=np.float64)
    n = x.shape[0]
    event_shape = x.shape[1:]
    flat = x.reshape(n, -1)
    if n < 4:
        return np.full(event_shape, float(n))

    rho = _autocorrelation(flat)
    ess = np.empty(flat.shape[1])
    for j in range(flat.shape[1]):
        if not np.isfinite(rho[0, j]):
            ess[j] = n
            continue
        total = 0.0
        for k in range(0, n - 1, 2):
            pair = rho[k, j] + rho[k + 1, j]
            if pair <= 0:
                break
            total += pair
        tau = max(-1.0 + 2.0 * total, 1.0 / n)
        ess[j] = min(n / tau, n * np.log10(n))
    return ess.reshape(event_shape)


def rhat(chains: jnp.ndarray | np.ndarray) -> np.ndarray:
    """
    Compute R-hat convergence diagnostic.

    Parameters
    ----------
    chains : array
        Posterior samples across chains, shape (n_chains, n_samples, ...).

    Returns
    -------
    np.ndarray
        R-hat per element, shape ``chains.shape[2:]``. Values near 1
        indicate the chains agree.

    Raises
    ------
    ValueError
        If fewer than two chains or two samples per chain are given.

    References:
    ----------
        [1] https://bookdown.org/rdpeng/advstatcomp/monitoring-convergence.html
    """
    x = np.asarray(chains, dtype=np.float64)
    if x.ndim < 2 or x.shape[0] < 2 or x.shape[1] < 2:
        raise ValueError(
            f"rhat needs shape (n_chains >= 2, n_samples >= 2, ...), got {x.shape}"
        )
    n = x.shape[1]
    chain_means = x.mean(axis=1)
    between = n * chain_means.var(axis=0, ddof=1)
    within = x.var(axis=1, ddof=1).mean(axis=0)
    pooled = (n - 1) / n * within + between / n
    with np.errstate(invalid="ignore", divide="ignore"):
        r = np.sqrt(pooled / within)
    # identical constant chains
    return np.where((within == 0) & (between == 0), 1.0, r)


def chain_summary(
    chains: Mapping[str, jnp.ndarray],
    *,
    quantiles: Sequence[float] = (0.025, 0.5, 0.975),
) -> dict[str, dict[str, Any]]:
    """
    Summarise a batch-style chain per parameter.

    Parameters
    ----------
    chains : Mapping[str, array]
        Output of a batch sampler: arrays of shape (n_iters, ...).
    quantiles : sequence of float
        Quantile levels to report.

    Returns
    -------
    dict
        ``{name: {"mean", "std", "quantiles": {q: array}, "ess"}}``.
    """
    summary: dict[str, dict[str, Any]] = {}
    for name, samples in chains.items():
        samples = jnp.asarray(samples)
        summary[name] = {
            "mean": jnp.mean(samples, axis=0),
            "std": jnp.std(samples, axis=0),
            "quantiles": {q: jnp.quantile(samples, q, axis=0) for q in quantiles},
            "ess": effective_sample_size(samples),
        }
    return summary


def print_chain_summary(chains: Mapping[str, jnp.ndarray]) -> None:
    """Print chain_summary() in a human-readable format."""
    summary = chain_summary(chains)
    n_iters = next(iter(chains.values())).shape[0]
    print(f"Chain Summary ({n_iters} iterations):\n")
    for name, stats in summary.items():
        print(f"{name}:")
        mean, std = stats["mean"], stats["std"]
        q025, q975 = stats["quantiles"][0.025], stats["quantiles"][0.975]
        if mean.size == 1:
            print(f"  Mean: {float(mean):.3f} ± {float(std):.3f}")
            print(f"  95% CI: [{float(q025):.3f}, {float(q975):.3f}]")
            print(f"  ESS: {float(stats['ess']):.1f}")
        else:
            print(f"  Mean: {mean}")
            print(f"  Std:  {std}")
            print(f"  ESS (min): {float(np.min(stats['ess'])):.1f}")
            print(f"  Shape: {mean.shape}")
        print()
