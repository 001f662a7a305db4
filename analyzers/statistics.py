import logging

import numpy as np
from scipy.stats import zscore

from configs.topic_config import TOPIC_CONFIG

class StatisticalAnalyzer:
    """
    A class for the scalar statistics used to rank topic models:
      1. Topic exclusivity from a topic-word matrix.
      2. Standardization of metrics across candidate models (via scipy.stats.zscore).
    """

    def __init__(self, epsilon: float = TOPIC_CONFIG['entropy_epsilon']):
        """
        Args:
            epsilon: Offset added inside the logarithm so zero probabilities
                contribute nothing to the entropy.
        """
        self.epsilon = epsilon

    def calculate_exclusivity(self, phi: np.ndarray, top_n: int = TOPIC_CONFIG['exclusivity_top_n']) -> float:
        """
        Calculate the mean exclusivity of a topic-word matrix.

        Steps:
          1. For each topic, pick its top_n most probable terms.
          2. For each such term, take its probabilities across all topics and
             compute the entropy -sum(p * log(p + eps)).
          3. Score the term as 1 - entropy / log(K); a term owned by a single
             topic scores close to 1.
          4. Average the term scores per topic, then across topics.

        Args:
            phi: Topic-word probability matrix of shape (K, V).
            top_n: Number of top terms considered per topic (capped at V).

        Returns:
            A float, NaN when K < 2 (the maximum entropy is zero).
        """
        phi = np.asarray(phi, dtype=float)
        n_topics, n_terms = phi.shape
        top_n = min(top_n, n_terms)
        max_entropy = np.log(n_topics)

        if n_topics < 2 or top_n == 0:
            logging.warning("Exclusivity is undefined for fewer than two topics or an empty vocabulary.")
            return float('nan')

        # Entropy of every term's distribution across topics
        term_entropy = -np.sum(phi * np.log(phi + self.epsilon), axis=0)
        term_specificity = 1 - term_entropy / max_entropy

        topic_scores = []
        for topic_dist in phi:
            top_idx = np.argsort(-topic_dist, kind='stable')[:top_n]
            topic_scores.append(np.nanmean(term_specificity[top_idx]))

        return float(np.nanmean(topic_scores))

    @staticmethod
    def standardize(values: np.ndarray) -> np.ndarray:
        """
        Z-scores with the sample standard deviation (ddof=1).

        Non-finite inputs stay NaN. When fewer than two finite values exist or
        they have no spread, every finite value scores 0.
        """
        values = np.asarray(values, dtype=float)
        finite = np.isfinite(values)
        scores = np.full(values.shape, np.nan)

        if finite.sum() < 2 or np.nanstd(values[finite]) == 0:
            scores[finite] = 0.0
            return scores

        scores[finite] = zscore(values[finite], ddof=1)
        return scores
