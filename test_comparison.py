import numpy as np
import pandas as pd
import pytest
from scipy import sparse

import analyzers.comparison as comparison
from configs.topic_config import TOPIC_CONFIG
from analyzers.comparison import (
    calculate_exclusivity,
    compare_models,
    convert_dtm_to_stm,
    train_ctm,
    train_stm
)
from analyzers.statistics import StatisticalAnalyzer
from analyzers.topic import TopicModelResult
from utils.text_processing import DocumentTermMatrix

def test_exclusivity_rewards_topic_specific_terms():
    exclusive = np.array([[0.5, 0.5, 0.0, 0.0], [0.0, 0.0, 0.5, 0.5]])
    shared = np.full((2, 4), 0.25)

    assert calculate_exclusivity(shared) == pytest.approx(0.0, abs=1e-6)
    assert calculate_exclusivity(exclusive) > calculate_exclusivity(shared)

def test_exclusivity_undefined_for_one_topic():
    assert np.isnan(calculate_exclusivity(np.array([[0.5, 0.5]])))

def test_standardize():
    scores = StatisticalAnalyzer.standardize(np.array([1.0, 2.0, 3.0]))
    assert scores == pytest.approx([-1.0, 0.0, 1.0])

    assert StatisticalAnalyzer.standardize(np.array([4.2])) == pytest.approx([0.0])
    assert StatisticalAnalyzer.standardize(np.array([2.0, 2.0])) == pytest.approx([0.0, 0.0])

    with_nan = StatisticalAnalyzer.standardize(np.array([1.0, np.nan, 3.0]))
    assert np.isnan(with_nan[1])
    assert with_nan[0] < 0 < with_nan[2]

def test_convert_dtm_to_stm():
    matrix = sparse.csr_matrix(np.array([[2, 0, 1], [0, 0, 0], [0, 3, 0]]))
    dtm = DocumentTermMatrix(matrix, ['d1', 'd2', 'd3'], ['sprint', 'coach', 'model'])

    stm_input = convert_dtm_to_stm(dtm)

    assert stm_input['vocab'] == ['sprint', 'coach', 'model']
    assert stm_input['documents'][0].tolist() == [[0, 2], [2, 1]]
    assert stm_input['documents'][1].tolist() == [[0], [0]]
    assert stm_input['documents'][2].tolist() == [[1], [3]]

def test_train_ctm(small_dtm):
    model = train_ctm(small_dtm, k=2, seed=1234, iterations=50)

    assert model.kind == 'CTM'
    assert model.phi.shape == (2, small_dtm.ncol)
    assert model.theta.shape == (small_dtm.nrow, 2)

def test_train_stm_with_prevalence(small_dtm):
    metadata = pd.DataFrame({'year': [2019 + i % 3 for i in range(small_dtm.nrow)]})
    model = train_stm(small_dtm, k=2, metadata=metadata, prevalence='year', seed=1234, iterations=50)

    assert model.kind == 'STM'
    assert model.theta.shape == (small_dtm.nrow, 2)
    assert model.params['prevalence'] == 'year'

def test_train_stm_validates_metadata(small_dtm):
    with pytest.raises(ValueError, match="metadata is required"):
        train_stm(small_dtm, k=2, prevalence='year')

    with pytest.raises(ValueError, match="Prevalence columns not found"):
        train_stm(small_dtm, k=2, metadata=pd.DataFrame({'journal': ['x'] * small_dtm.nrow}),
                  prevalence='year')

    with pytest.raises(ValueError, match="rows but the DTM has"):
        train_stm(small_dtm, k=2, metadata=pd.DataFrame({'year': [2020]}), prevalence='year')

def test_compare_models(small_dtm):
    result = compare_models(small_dtm, k=2, seed=1234, verbose=False)

    assert set(result['models']) == {'lda', 'stm', 'ctm'}
    metrics = result['metrics']
    assert list(metrics.columns) == ['model', 'coherence', 'exclusivity', 'combined_score']
    assert list(metrics['model']) == ['LDA', 'STM', 'CTM']
    assert result['recommendation'] in set(metrics['model'])
    assert result['recommendation'] == metrics.loc[metrics['combined_score'].idxmax(), 'model']

def test_compare_models_skips_failed_models(small_dtm, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise RuntimeError("out of memory")

    monkeypatch.setattr(comparison, "train_ctm", broken)
    result = compare_models(small_dtm, k=2, seed=1234, verbose=False)

    assert result['models']['ctm'] is None
    assert list(result['metrics']['model']) == ['LDA', 'STM']
    assert "CTM training failed: out of memory" in caplog.text

def test_compare_models_raises_when_all_fail(small_dtm, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    for name in ("train_lda", "train_stm", "train_ctm"):
        monkeypatch.setattr(comparison, name, broken)

    with pytest.raises(RuntimeError, match="All models failed to train"):
        compare_models(small_dtm, k=2, verbose=False)

def test_compare_models_skips_lda_with_unknown_method(small_dtm, caplog):
    result = compare_models(small_dtm, k=2, lda_method="em", seed=1234, verbose=False)

    assert result['models']['lda'] is None
    assert list(result['metrics']['model']) == ['STM', 'CTM']
    assert "LDA training failed: Unsupported LDA method 'em'" in caplog.text

def test_exclusivity_top_n_defaults_to_config(monkeypatch):
    # Only the first topic's leading term is exclusive
    phi = np.array([[0.6, 0.2, 0.2], [0.0, 0.5, 0.5]])

    monkeypatch.setitem(TOPIC_CONFIG, 'exclusivity_top_n', 1)
    assert calculate_exclusivity(phi) == pytest.approx(calculate_exclusivity(phi, top_n=1))
    assert calculate_exclusivity(phi) != pytest.approx(calculate_exclusivity(phi, top_n=3))

def stub_model(kind):
    return TopicModelResult(kind, 'stub', None, np.full((2, 3), 1 / 3), np.full((4, 2), 0.5),
                            ['a', 'b', 'c'], ['d1', 'd2', 'd3', 'd4'])

def patch_trainers(monkeypatch, coherence, exclusivity):
    monkeypatch.setattr(comparison, "train_lda", lambda *args, **kwargs: stub_model('LDA'))
    monkeypatch.setattr(comparison, "train_stm", lambda *args, **kwargs: stub_model('STM'))
    monkeypatch.setattr(comparison, "train_ctm", lambda *args, **kwargs: stub_model('CTM'))
    coherence, exclusivity = iter(coherence), iter(exclusivity)
    monkeypatch.setattr(comparison, "mean_coherence", lambda phi, dtm: next(coherence))
    monkeypatch.setattr(comparison, "calculate_exclusivity", lambda phi: next(exclusivity))

def test_compare_models_recommends_first_model_on_ties(small_dtm, monkeypatch):
    patch_trainers(monkeypatch, coherence=[-3.0, -1.0, -1.0], exclusivity=[0.2, 0.6, 0.6])

    result = compare_models(small_dtm, k=2, verbose=False)

    assert result['metrics']['combined_score'].iloc[1] == pytest.approx(
        result['metrics']['combined_score'].iloc[2])
    assert result['recommendation'] == 'STM'

def test_compare_models_recommends_first_model_without_scores(small_dtm, monkeypatch):
    nan = float('nan')
    patch_trainers(monkeypatch, coherence=[nan, nan, nan], exclusivity=[nan, nan, nan])

    result = compare_models(small_dtm, k=2, verbose=False)

    assert result['metrics']['combined_score'].isna().all()
    assert result['recommendation'] == 'LDA'
