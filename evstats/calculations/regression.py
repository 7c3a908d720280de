"""
Linear Regression Calculations

A single dense linear unit (y = Xw + b) fitted with mini-batch Adam on a
mean-squared-error loss. This is all the range and SoH predictors need, so
it is implemented directly on NumPy rather than pulling in a deep learning
framework.

Inputs are expected to be z-score normalized already (see
statistics.normalize).
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

ADAM_BETA_1 = 0.9
ADAM_BETA_2 = 0.999
ADAM_EPSILON = 1e-7


@dataclass(frozen=True)
class LinearFit:
    """Weights, bias and final training loss of a fitted linear unit."""

    weights: Tuple[float, ...]
    bias: float
    loss: float

    @property
    def is_finite(self) -> bool:
        values = list(self.weights) + [self.bias, self.loss]
        return all(math.isfinite(v) for v in values)

    def predict(self, normalized_features: Sequence[float]) -> float:
        return float(np.dot(np.asarray(self.weights), np.asarray(normalized_features)) + self.bias)


def fit_linear_regression(
    features: np.ndarray,
    labels: np.ndarray,
    epochs: int,
    batch_size: int,
    learning_rate: float,
    seed: int,
    non_negative: Sequence[int] = (),
) -> LinearFit:
    """
    Fit y = Xw + b with shuffled mini-batch Adam.

    Weights start from a Glorot-uniform draw and the bias starts at the
    label mean, so the optimizer only has to learn the slope. Weight
    indexes listed in non_negative are projected back to >= 0 after every
    step, which keeps the fitted curve monotonic in those features.

    Args:
        features: Normalized features, shape (samples, n_features)
        labels: Targets, shape (samples,)
        epochs: Full passes over the data
        batch_size: Mini-batch size
        learning_rate: Adam step size
        seed: Seed for the weight init and per-epoch shuffles
        non_negative: Weight indexes constrained to be non-negative

    Returns:
        LinearFit with the loss averaged over the last epoch's batches
    """
    features = np.asarray(features, dtype=np.float64)
    labels = np.asarray(labels, dtype=np.float64).reshape(-1)
    n_samples, n_features = features.shape

    rng = np.random.default_rng(seed)
    limit = math.sqrt(6.0 / (n_features + 1))
    weights = rng.uniform(-limit, limit, size=n_features)
    bias = float(labels.mean())
    constrained = list(non_negative)
    if constrained:
        weights[constrained] = np.abs(weights[constrained])

    m_w = np.zeros(n_features)
    v_w = np.zeros(n_features)
    m_b = 0.0
    v_b = 0.0
    step = 0
    epoch_loss = 0.0

    for _ in range(epochs):
        order = rng.permutation(n_samples)
        loss_sum = 0.0
        for start in range(0, n_samples, batch_size):
            idx = order[start:start + batch_size]
            x_batch = features[idx]
            y_batch = labels[idx]

            error = x_batch @ weights + bias - y_batch
            loss_sum += float(np.dot(error, error))

            grad_w = 2.0 * (x_batch.T @ error) / len(idx)
            grad_b = 2.0 * float(error.mean())

            step += 1
            m_w = ADAM_BETA_1 * m_w + (1 - ADAM_BETA_1) * grad_w
            v_w = ADAM_BETA_2 * v_w + (1 - ADAM_BETA_2) * grad_w ** 2
            m_b = ADAM_BETA_1 * m_b + (1 - ADAM_BETA_1) * grad_b
            v_b = ADAM_BETA_2 * v_b + (1 - ADAM_BETA_2) * grad_b ** 2

            correction_1 = 1 - ADAM_BETA_1 ** step
            correction_2 = 1 - ADAM_BETA_2 ** step
            weights = weights - learning_rate * (m_w / correction_1) / (np.sqrt(v_w / correction_2) + ADAM_EPSILON)
            bias = bias - learning_rate * (m_b / correction_1) / (math.sqrt(v_b / correction_2) + ADAM_EPSILON)

            if constrained:
                weights[constrained] = np.maximum(weights[constrained], 0.0)

        epoch_loss = loss_sum / n_samples

    return LinearFit(
        weights=tuple(float(w) for w in weights),
        bias=float(bias),
        loss=float(epoch_loss),
    )
