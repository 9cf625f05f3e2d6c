"""Learning Module - ranking weights learned from hiring outcomes."""
from core.learning.weights import (
    LearningWeights,
    LearningWeightEstimator,
    Outcome,
    compute_learning_weights,
)

__all__ = ['LearningWeights', 'LearningWeightEstimator', 'Outcome', 'compute_learning_weights']
