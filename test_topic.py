from types import SimpleNamespace

import numpy as np
import pytest

import analyzers.topic as topic
from analyzers.topic import (
    TopicModelResult,
    check_lda_method,
    mean_coherence,
    select_optimal_k,
    topic_coherence,
    train_lda
)

def test_train_lda_requires_k(small_dtm):
    with pytest.raises(ValueError, match="k must be specified"):
        train_lda(small_dtm)

def test_train_lda_rejects_unknown_method(small_dtm):
    with pytest.raises(ValueError, match="Unsupported LDA method"):
        train_lda(small_dtm, k=2, method="em")

def test_check_lda_method_is_case_insensitive():
    check_lda_method("Gibbs")
    check_lda_method("VEM")

def test_train_lda_gibbs(small_dtm):
    model = train_lda(small_dtm, k=2, seed=1234, iterations=100, burnin=20)

    assert isinstance(model, TopicModelResult)
    assert model.kind == 'LDA'
    assert model.method == 'gibbs'
    assert model.k == 2
    assert model.phi.shape == (2, small_dtm.ncol)
    assert model.theta.shape == (small_dtm.nrow, 2)
    assert np.allclose(model.phi.sum(axis=1), 1.0, atol=1e-4)
    assert np.allclose(model.theta.sum(axis=1), 1.0, atol=1e-4)
    assert model.params['alpha'] == pytest.approx(25.0)

def test_train_lda_gibbs_is_reproducible(small_dtm):
    first = train_lda(small_dtm, k=2, seed=99, iterations=50, burnin=0)
    second = train_lda(small_dtm, k=2, seed=99, iterations=50, burnin=0)
    assert np.allclose(first.phi, second.phi)

def test_train_lda_vem(small_dtm):
    model = train_lda(small_dtm, k=2, method="vem", seed=1234, iterations=50)

    assert model.method == 'vem'
    assert model.phi.shape == (2, small_dtm.ncol)
    assert np.allclose(model.theta.sum(axis=1), 1.0, atol=1e-3)

def test_tidy_frames_number_topics_from_one(small_dtm):
    model = train_lda(small_dtm, k=3, seed=1234, iterations=50, burnin=0)

    beta = model.tidy_beta()
    gamma = model.tidy_gamma()
    dominant = model.dominant_topics()

    assert list(beta.columns) == ['topic', 'term', 'beta']
    assert len(beta) == 3 * small_dtm.ncol
    assert sorted(beta['topic'].unique()) == [1, 2, 3]
    assert list(gamma.columns) == ['document', 'topic', 'gamma']
    assert len(gamma) == 3 * small_dtm.nrow
    assert list(dominant['document']) == small_dtm.doc_ids
    assert dominant['topic'].between(1, 3).all()

def test_top_terms_follow_phi():
    model = TopicModelResult(
        kind='LDA', method='gibbs', model=None,
        phi=np.array([[0.7, 0.2, 0.1], [0.1, 0.1, 0.8]]),
        theta=np.array([[0.9, 0.1]]),
        terms=['sprint', 'coach', 'model'],
        doc_ids=['doc_1']
    )
    assert model.top_terms(2) == [['sprint', 'coach'], ['model', 'sprint']]

def test_topic_coherence_scores_each_topic(small_dtm):
    model = train_lda(small_dtm, k=2, seed=1234, iterations=100, burnin=20)
    scores = topic_coherence(model.phi, small_dtm, top_n=5)

    assert scores.shape == (2,)
    assert np.isfinite(mean_coherence(model.phi, small_dtm))

def test_topic_coherence_rejects_unknown_measure(small_dtm):
    phi = np.full((2, small_dtm.ncol), 1 / small_dtm.ncol)
    with pytest.raises(ValueError, match="Unsupported coherence measure"):
        topic_coherence(phi, small_dtm, measure="perplexity")

def test_select_optimal_k(small_dtm):
    selection = select_optimal_k(small_dtm, k_range=[2, 3], iterations=50, burnin=0, plot=False)

    assert selection['optimal_k'] in (2, 3)
    assert list(selection['results'].columns) == ['topics', 'coherence']
    assert list(selection['results']['topics']) == [2, 3]
    assert selection['plot'] is not None

def test_select_optimal_k_saves_plot(small_dtm, tmp_path):
    save_path = tmp_path / "coherence.png"
    select_optimal_k(small_dtm, k_range=[2], iterations=20, burnin=0, plot=False, save_path=str(save_path))
    assert save_path.exists()

def test_select_optimal_k_requires_values(small_dtm):
    with pytest.raises(ValueError, match="k_range must contain at least one value."):
        select_optimal_k(small_dtm, k_range=[], plot=False)

def test_select_optimal_k_takes_first_k_on_ties(small_dtm, monkeypatch):
    scores = iter([0.1, 0.9, 0.9, 0.2])
    monkeypatch.setattr(topic, "_fit_lda", lambda *args, **kwargs: SimpleNamespace(phi=None))
    monkeypatch.setattr(topic, "mean_coherence", lambda phi, dtm: next(scores))

    selection = select_optimal_k(small_dtm, k_range=[2, 3, 4, 5], plot=False)

    assert selection['optimal_k'] == 3
    assert list(selection['results']['coherence']) == [0.1, 0.9, 0.9, 0.2]

def test_select_optimal_k_falls_back_to_first_k_without_scores(small_dtm, monkeypatch):
    monkeypatch.setattr(topic, "_fit_lda", lambda *args, **kwargs: SimpleNamespace(phi=None))
    monkeypatch.setattr(topic, "mean_coherence", lambda phi, dtm: float('nan'))

    selection = select_optimal_k(small_dtm, k_range=[4, 6], plot=False)
    assert selection['optimal_k'] == 4
