import matplotlib

# Plots are drawn off-screen during tests
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest
from scipy import sparse

from utils.text_processing import DocumentTermMatrix

@pytest.fixture
def small_dtm():
    """Forty short documents over two clearly separated vocabularies."""
    rng = np.random.default_rng(42)
    sport_terms = ['athlet', 'train', 'muscl', 'sprint', 'coach', 'injuri']
    data_terms = ['model', 'learn', 'predict', 'algorithm', 'network', 'featur']
    terms = sport_terms + data_terms

    rows = []
    for i in range(40):
        counts = np.zeros(len(terms), dtype=int)
        block = slice(0, 6) if i % 2 == 0 else slice(6, 12)
        counts[block] = rng.integers(1, 5, size=6)
        # A little noise from the other vocabulary
        counts[rng.integers(0, len(terms))] += 1
        rows.append(counts)

    matrix = sparse.csr_matrix(np.vstack(rows))
    doc_ids = [f"doc_{i}" for i in range(1, 41)]
    return DocumentTermMatrix(matrix, doc_ids, terms)

@pytest.fixture
def papers():
    return pd.DataFrame({
        'title': [f"Paper {i}" for i in range(1, 7)],
        'abstract': [
            "Athletes improved sprint performance after strength training programs.",
            "Machine learning models predict injury risk in professional athletes.",
            "Coaches monitored training load and muscle fatigue during the season.",
            "Deep learning networks classify movement patterns from wearable sensors.",
            None,
            "Training interventions reduced injury rates among youth athletes."
        ],
        'author_keywords': [
            "sprint; strength training; athletes",
            "machine learning; injury prediction; athletes",
            "training load; fatigue; athletes",
            "machine learning; wearable sensors; deep learning",
            "",
            "injury prediction; athletes; training load"
        ],
        'year': ["2019", "2020", "2020", "2021", "2021", "2022"]
    })
