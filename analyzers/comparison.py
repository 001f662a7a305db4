import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import tomotopy as tp

from config import (
    DEFAULT_SEED,
    DEFAULT_K,
    DEFAULT_BETA,
    GIBBS_ITERATIONS,
    GIBBS_BURNIN,
    CTM_ITERATIONS,
    STM_ITERATIONS
)
from analyzers.statistics import StatisticalAnalyzer
from configs.topic_config import TOPIC_CONFIG
from analyzers.topic import TopicModelResult, fit_tomotopy, mean_coherence, train_lda
from utils.text_processing import DocumentTermMatrix

logger = logging.getLogger(__name__)

def calculate_exclusivity(phi: np.ndarray, top_n: Optional[int] = None) -> float:
    """
    Average exclusivity of a topic-word matrix.

    For each topic, the ``top_n`` most probable terms are scored by how
    concentrated their probability is on few topics (one minus normalized
    entropy across topics); scores are averaged per topic, then across topics.

    Args:
        phi: Topic-word probability matrix (topics x terms).
        top_n: Number of top terms considered per topic, defaults to
            TOPIC_CONFIG['exclusivity_top_n'].

    Returns:
        Mean exclusivity, NaN when undefined (a single topic).
    """
    top_n = top_n or TOPIC_CONFIG['exclusivity_top_n']
    return StatisticalAnalyzer().calculate_exclusivity(np.asarray(phi, dtype=float), top_n=top_n)

def convert_dtm_to_stm(dtm: DocumentTermMatrix) -> Dict[str, Any]:
    """
    Convert a DocumentTermMatrix into the documents/vocab layout of
    structural topic model tooling.

    Returns:
        A dictionary with 'documents', one 2 x n integer array of
        (term index, count) per document, and 'vocab', the term list.
        Documents without terms are encoded as [[0], [0]].
    """
    documents = []
    for i in range(dtm.nrow):
        row = dtm.matrix.getrow(i)
        if row.nnz == 0:
            documents.append(np.array([[0], [0]], dtype=int))
            continue
        documents.append(np.vstack([row.indices, row.data]).astype(int))

    return {'documents': documents, 'vocab': list(dtm.terms)}

def _stm_metadata(dtm: DocumentTermMatrix,
                  metadata: Optional[pd.DataFrame],
                  prevalence: Optional[Union[str, Sequence[str]]]) -> Optional[List[str]]:
    """
    Encode prevalence covariates as one categorical label per document.
    """
    if prevalence is None:
        return None
    if metadata is None:
        raise ValueError("metadata is required when prevalence is given.")

    columns = [prevalence] if isinstance(prevalence, str) else list(prevalence)
    missing = [col for col in columns if col not in metadata.columns]
    if missing:
        raise ValueError(f"Prevalence columns not found in metadata: {missing}")
    if len(metadata) != dtm.nrow:
        raise ValueError(
            f"metadata has {len(metadata)} rows but the DTM has {dtm.nrow} documents."
        )

    values = metadata[columns].astype(str)
    return values.apply(lambda row: '|'.join(f"{col}={row[col]}" for col in columns), axis=1).tolist()

def train_stm(dtm: DocumentTermMatrix,
              k: int,
              metadata: Optional[pd.DataFrame] = None,
              prevalence: Optional[Union[str, Sequence[str]]] = None,
              seed: int = DEFAULT_SEED,
              iterations: int = STM_ITERATIONS) -> TopicModelResult:
    """
    Fit a structural topic model where document covariates shift topic
    prevalence (Dirichlet-multinomial regression).
    """
    labels = _stm_metadata(dtm, metadata, prevalence)

    model = tp.DMRModel(k=k, eta=DEFAULT_BETA, seed=seed)
    phi, theta = fit_tomotopy(model, dtm, iterations, metadata=labels)

    return TopicModelResult(
        kind='STM',
        method='dmr',
        model=model,
        phi=phi,
        theta=theta,
        terms=list(dtm.terms),
        doc_ids=list(dtm.doc_ids),
        params={'k': k, 'prevalence': prevalence, 'seed': seed, 'iterations': iterations}
    )

def train_ctm(dtm: DocumentTermMatrix,
              k: int,
              seed: int = DEFAULT_SEED,
              iterations: int = CTM_ITERATIONS) -> TopicModelResult:
    """Fit a correlated topic model."""
    model = tp.CTModel(k=k, eta=DEFAULT_BETA, seed=seed)
    phi, theta = fit_tomotopy(model, dtm, iterations)

    return TopicModelResult(
        kind='CTM',
        method='ctm',
        model=model,
        phi=phi,
        theta=theta,
        terms=list(dtm.terms),
        doc_ids=list(dtm.doc_ids),
        params={'k': k, 'seed': seed, 'iterations': iterations}
    )

def compare_models(dtm: DocumentTermMatrix,
                   k: int = DEFAULT_K,
                   metadata: Optional[pd.DataFrame] = None,
                   prevalence: Optional[Union[str, Sequence[str]]] = None,
                   seed: int = DEFAULT_SEED,
                   lda_method: str = "gibbs",
                   verbose: bool = True) -> Dict[str, Any]:
    """
    Train LDA, STM and CTM on the same DTM and compare them on semantic
    coherence and exclusivity.

    Each model is scored by mean topic coherence and exclusivity; both
    metrics are standardized across the fitted models and summed into a
    combined score, and the model with the highest combined score is
    recommended. A model that fails to train is logged and skipped.

    Args:
        dtm: DocumentTermMatrix from create_dtm().
        k: Number of topics for every model.
        metadata: Optional document-level covariates for STM, one row per
            DTM document.
        prevalence: Column name(s) of ``metadata`` used as STM prevalence
            covariates.
        seed: Random seed.
        lda_method: 'gibbs' or 'vem'. Any other value fails the LDA fit,
            which is logged and skipped like any other model failure.
        verbose: Log progress and the final metrics table.

    Returns:
        A dictionary with:
          - 'models': {'lda', 'stm', 'ctm'} fitted results (None on failure)
          - 'metrics': frame with model, coherence, exclusivity, combined_score
          - 'recommendation': name of the recommended model
    """
    log = logger.info if verbose else logger.debug

    log("=== Starting Multi-Model Comparison ===")

    trainers = [
        ('lda', 'LDA', lambda: train_lda(
            dtm, k=k, method=lda_method, seed=seed,
            iterations=GIBBS_ITERATIONS, burnin=GIBBS_BURNIN)),
        ('stm', 'STM', lambda: train_stm(
            dtm, k=k, metadata=metadata, prevalence=prevalence, seed=seed)),
        ('ctm', 'CTM', lambda: train_ctm(dtm, k=k, seed=seed))
    ]

    models = {}
    rows = []
    for step, (key, name, trainer) in enumerate(trainers, 1):
        log(f"{step}/{len(trainers)} Training {name} model...")
        try:
            models[key] = trainer()
        except Exception as e:
            reason = e.__cause__ if e.__cause__ is not None else e
            logger.warning(f"{name} training failed: {reason}")
            models[key] = None
            continue

        phi = models[key].phi
        rows.append({
            'model': name,
            'coherence': mean_coherence(phi, dtm),
            'exclusivity': calculate_exclusivity(phi)
        })

    if not rows:
        raise RuntimeError("All models failed to train. Check your DTM and parameters.")

    metrics = pd.DataFrame(rows, columns=['model', 'coherence', 'exclusivity'])
    metrics['combined_score'] = (
        StatisticalAnalyzer.standardize(metrics['coherence'].to_numpy())
        + StatisticalAnalyzer.standardize(metrics['exclusivity'].to_numpy())
    )

    if metrics['combined_score'].notna().any():
        recommended_model = metrics.loc[metrics['combined_score'].idxmax(), 'model']
    else:
        recommended_model = metrics['model'].iloc[0]

    log("=== Model Comparison Complete ===")
    log(f"Recommended model: {recommended_model}")
    log("\n" + metrics.to_string(index=False))

    return {
        'models': models,
        'metrics': metrics,
        'recommendation': recommended_model
    }
