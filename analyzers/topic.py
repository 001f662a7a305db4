import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd
import tomotopy as tp
from gensim.models import CoherenceModel, LdaModel
from tqdm import tqdm

from config import (
    DEFAULT_SEED,
    GIBBS_ITERATIONS,
    GIBBS_BURNIN,
    DEFAULT_BETA,
    VEM_PASSES,
    FIGURE_DPI
)
from configs.models import ModelConfig
from configs.topic_config import TOPIC_CONFIG
from utils.text_processing import DocumentTermMatrix

logger = logging.getLogger(__name__)

SUPPORTED_KINDS = ('LDA', 'STM', 'CTM')

@dataclass
class TopicModelResult:
    """
    A fitted topic model together with the matrices the rest of the package
    reads from it.

    Attributes:
        kind: 'LDA', 'STM' or 'CTM'.
        method: Fitting method ('gibbs', 'vem', 'dmr', 'ctm').
        model: The backend model object (tomotopy or gensim).
        phi: Topic-word probabilities, shape (k, n_terms), columns in the
            order of ``terms``.
        theta: Document-topic proportions, shape (n_docs, k), rows in the
            order of ``doc_ids``.
        terms: Vocabulary, aligned with the DTM the model was fitted on.
        doc_ids: Document ids, aligned with the DTM rows.
    """
    kind: str
    method: str
    model: Any
    phi: np.ndarray
    theta: np.ndarray
    terms: List[str]
    doc_ids: List[str]
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def k(self) -> int:
        return self.phi.shape[0]

    def top_terms(self, n: int = 10) -> List[List[str]]:
        """The ``n`` most probable terms of every topic."""
        n = min(n, len(self.terms))
        return [
            [self.terms[j] for j in np.argsort(-row, kind='stable')[:n]]
            for row in self.phi
        ]

    def tidy_beta(self) -> pd.DataFrame:
        """Long frame of topic-word probabilities: topic, term, beta."""
        k, n_terms = self.phi.shape
        return pd.DataFrame({
            'topic': np.repeat(np.arange(1, k + 1), n_terms),
            'term': np.tile(np.asarray(self.terms, dtype=object), k),
            'beta': self.phi.ravel()
        })

    def tidy_gamma(self) -> pd.DataFrame:
        """Long frame of document-topic proportions: document, topic, gamma."""
        n_docs, k = self.theta.shape
        return pd.DataFrame({
            'document': np.repeat(np.asarray(self.doc_ids, dtype=object), k),
            'topic': np.tile(np.arange(1, k + 1), n_docs),
            'gamma': self.theta.ravel()
        })

    def dominant_topics(self) -> pd.DataFrame:
        """Highest-gamma topic per document (first topic wins ties)."""
        best = np.argmax(self.theta, axis=1)
        return pd.DataFrame({
            'document': self.doc_ids,
            'topic': best + 1,
            'gamma': self.theta[np.arange(len(best)), best]
        })

def _aligned_phi(model, terms: List[str]) -> np.ndarray:
    """Topic-word matrix of a tomotopy model re-ordered to ``terms``."""
    vocab = list(model.used_vocabs)
    raw = np.array([model.get_topic_word_dist(t) for t in range(model.k)], dtype=float)
    index = {word: i for i, word in enumerate(vocab)}
    phi = np.zeros((model.k, len(terms)), dtype=float)
    for j, term in enumerate(terms):
        i = index.get(term)
        if i is not None:
            phi[:, j] = raw[:, i]
    return phi

def fit_tomotopy(model, dtm: DocumentTermMatrix, iterations: int,
                 burnin: int = 0, metadata: Optional[List[str]] = None):
    """
    Feed the DTM documents into a tomotopy model and train it.

    Returns the (phi, theta) pair aligned with the DTM.
    """
    texts = dtm.to_texts()
    for i, words in enumerate(texts):
        if metadata is None:
            model.add_doc(words)
        else:
            model.add_doc(words, metadata=metadata[i])

    if burnin > 0:
        model.train(burnin, workers=1)
    model.train(iterations, workers=1)

    theta = np.array([doc.get_topic_dist() for doc in model.docs], dtype=float)
    return _aligned_phi(model, dtm.terms), theta

def _fit_lda(dtm: DocumentTermMatrix, k: int, method: str, seed: int,
             iterations: int, burnin: int, alpha: Optional[float],
             beta: float) -> TopicModelResult:
    method = method.lower()
    if method == 'gibbs':
        if alpha is None:
            alpha = 50 / k
        model = tp.LDAModel(k=k, alpha=alpha, eta=beta, seed=seed)
        # Keep the priors fixed instead of re-estimating them while sampling
        model.optim_interval = 0
        phi, theta = fit_tomotopy(model, dtm, iterations, burnin=burnin)
    else:
        corpus = dtm.to_corpus()
        model = LdaModel(
            corpus=corpus,
            id2word=dtm.to_dictionary(),
            num_topics=k,
            alpha=alpha if alpha is not None else 'auto',
            eta=beta,
            passes=VEM_PASSES,
            iterations=iterations,
            random_state=seed,
            eval_every=None
        )
        phi = np.asarray(model.get_topics(), dtype=float)
        theta = np.zeros((len(corpus), k), dtype=float)
        for i, bow in enumerate(corpus):
            for tid, prob in model.get_document_topics(bow, minimum_probability=0.0):
                theta[i, tid] = prob

    return TopicModelResult(
        kind='LDA',
        method=method,
        model=model,
        phi=phi,
        theta=theta,
        terms=list(dtm.terms),
        doc_ids=list(dtm.doc_ids),
        params={'k': k, 'alpha': alpha, 'beta': beta, 'seed': seed,
                'iterations': iterations, 'burnin': burnin}
    )

def check_lda_method(method: str) -> None:
    """Raise ValueError for anything but the supported LDA methods."""
    if not isinstance(method, str) or method.lower() not in ModelConfig.LDA_METHODS:
        raise ValueError(
            f"Unsupported LDA method '{method}'. Choose from: {list(ModelConfig.LDA_METHODS)}"
        )

def topic_coherence(phi: np.ndarray,
                    dtm: DocumentTermMatrix,
                    top_n: Optional[int] = None,
                    measure: Optional[str] = None) -> np.ndarray:
    """
    Per-topic coherence of a topic-word matrix, scored on the DTM's own
    documents with gensim's CoherenceModel.

    Args:
        phi: Topic-word probabilities aligned with ``dtm.terms``.
        dtm: The document-term matrix the model was fitted on.
        top_n: Number of top terms per topic (defaults to TOPIC_CONFIG).
        measure: 'u_mass' (document co-occurrence) or one of the
            sliding-window measures, which read count-expanded texts.

    Returns:
        An array with one coherence value per topic (higher is better).
    """
    top_n = top_n or TOPIC_CONFIG['coherence_top_n']
    measure = measure or TOPIC_CONFIG['coherence_measure']
    if measure not in TOPIC_CONFIG['supported_measures']:
        raise ValueError(
            f"Unsupported coherence measure '{measure}'. "
            f"Choose from: {list(TOPIC_CONFIG['supported_measures'])}"
        )

    n = min(top_n, dtm.ncol)
    topics = [
        [dtm.terms[j] for j in np.argsort(-row, kind='stable')[:n]]
        for row in np.asarray(phi)
    ]

    params = {
        'topics': topics,
        'dictionary': dtm.to_dictionary(),
        'coherence': measure,
        'topn': n,
        'processes': 1
    }
    if measure == 'u_mass':
        params['corpus'] = dtm.to_corpus()
    else:
        params['texts'] = dtm.to_texts()

    coherence_model = CoherenceModel(**params)
    return np.asarray(coherence_model.get_coherence_per_topic(), dtype=float)

def mean_coherence(phi: np.ndarray, dtm: DocumentTermMatrix, **kwargs) -> float:
    """Average topic coherence, ignoring undefined topics."""
    scores = topic_coherence(phi, dtm, **kwargs)
    scores = scores[np.isfinite(scores)]
    return float(scores.mean()) if scores.size else float('nan')

def train_lda(dtm: DocumentTermMatrix,
              k: Optional[int] = None,
              method: str = "gibbs",
              seed: int = DEFAULT_SEED,
              iterations: int = GIBBS_ITERATIONS,
              burnin: int = GIBBS_BURNIN,
              alpha: Optional[float] = None,
              beta: float = DEFAULT_BETA) -> TopicModelResult:
    """
    Fit a Latent Dirichlet Allocation model to a document-term matrix.

    Args:
        dtm: DocumentTermMatrix from create_dtm().
        k: Number of topics. Required, see select_optimal_k().
        method: 'gibbs' (collapsed Gibbs sampling, tomotopy) or 'vem'
            (variational inference, gensim).
        seed: Random seed.
        iterations: Sampling iterations (gibbs) or per-document inference
            iterations (vem).
        burnin: Burn-in iterations before sampling (gibbs only).
        alpha: Document-topic prior, defaults to 50/k (Griffiths & Steyvers 2004).
        beta: Topic-word prior.

    Returns:
        A TopicModelResult of kind 'LDA'.
    """
    if k is None:
        raise ValueError(
            "k must be specified. Use select_optimal_k() to find the optimal k."
        )

    check_lda_method(method)

    if alpha is None:
        alpha = 50 / k

    logger.info(f"Training LDA model with k = {k}...")

    try:
        result = _fit_lda(dtm, k, method, seed, iterations, burnin, alpha, beta)
    except Exception as e:
        raise RuntimeError(f"LDA training failed: {e}") from e

    logger.info("LDA training complete.")
    return result

def select_optimal_k(dtm: DocumentTermMatrix,
                     k_range: Iterable[int] = range(2, 21, 2),
                     method: str = "gibbs",
                     seed: int = DEFAULT_SEED,
                     iterations: int = GIBBS_ITERATIONS,
                     burnin: int = GIBBS_BURNIN,
                     plot: bool = True,
                     save_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Fit one LDA model per candidate number of topics and keep the k with
    the highest mean topic coherence.

    Args:
        dtm: DocumentTermMatrix from create_dtm().
        k_range: Candidate numbers of topics.
        method: 'gibbs' or 'vem'.
        seed: Random seed.
        iterations: Gibbs iterations (or vem inference iterations).
        burnin: Gibbs burn-in iterations.
        plot: Show the coherence plot.
        save_path: Optional file the coherence plot is written to.

    Returns:
        A dictionary with:
          - 'optimal_k': the k with the highest coherence (first on ties)
          - 'results': frame with 'topics' and 'coherence' per tested k
          - 'plot': matplotlib Figure of coherence against k
    """
    # Imported here, the visualization module depends on TopicModelResult
    from utils.visualization import plot_coherence
    import matplotlib.pyplot as plt

    k_values = [int(k) for k in k_range]
    if not k_values:
        raise ValueError("k_range must contain at least one value.")

    check_lda_method(method)
    logger.info(f"Testing {len(k_values)} values of k...")

    coherence_scores = []
    for k in tqdm(k_values, desc="Selecting k", disable=not logger.isEnabledFor(logging.INFO)):
        logger.info(f"  Testing k = {k}...")
        result = _fit_lda(dtm, k, method, seed, iterations, burnin, alpha=None, beta=DEFAULT_BETA)
        coherence_scores.append(mean_coherence(result.phi, dtm))

    results = pd.DataFrame({'topics': k_values, 'coherence': coherence_scores})

    if results['coherence'].notna().any():
        optimal_row = results.loc[results['coherence'].idxmax()]
    else:
        optimal_row = results.iloc[0]
    optimal_k = int(optimal_row['topics'])

    logger.info(
        f"Optimal k selected: {optimal_k} (coherence = {optimal_row['coherence']:.3f})"
    )

    figure = plot_coherence(results)
    if save_path:
        figure.savefig(save_path, dpi=FIGURE_DPI, bbox_inches='tight')
    if plot:
        plt.show()

    return {
        'optimal_k': optimal_k,
        'results': results,
        'plot': figure
    }
