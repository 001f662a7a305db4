import logging
import math
from pathlib import Path
from typing import Iterable, List, Optional

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from matplotlib.figure import Figure
from matplotlib.ticker import PercentFormatter

from analyzers.topic import TopicModelResult, SUPPORTED_KINDS
from config import FIGURE_DPI, DOMINANT_TOPIC_THRESHOLD
from utils.text_processing import DocumentTermMatrix
from utils.theme import use_theme, STRIP_STYLE

logger = logging.getLogger(__name__)

class VisualizationGenerator:
    def __init__(self, output_dir: Path, dpi: int = FIGURE_DPI):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.dpi = dpi
        # Set matplotlib to use Agg backend for better memory management
        plt.switch_backend('Agg')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        plt.close('all')  # Ensure all figures are closed

    def save(self, figure: Figure, name: str) -> str:
        """Write a figure as <output_dir>/<name>.png and close it"""
        output_path = self.output_dir / f"{name}.png"

        try:
            figure.savefig(output_path, dpi=self.dpi, bbox_inches='tight')
            logger.info(f"Saved figure: {output_path}")
            return str(output_path)

        finally:
            plt.close(figure)

def _check_model(model) -> None:
    if not isinstance(model, TopicModelResult) or model.kind not in SUPPORTED_KINDS:
        raise TypeError("Model type not supported. Use LDA, STM, or CTM.")

def _document_ids(model: TopicModelResult, dtm: Optional[DocumentTermMatrix]) -> List[str]:
    """Row labels of the model's document-topic matrix, taken from the DTM when given."""
    if dtm is None:
        return list(model.doc_ids)
    if dtm.nrow != model.theta.shape[0]:
        raise ValueError(
            f"dtm has {dtm.nrow} documents but the model was fitted on {model.theta.shape[0]}."
        )
    return list(dtm.doc_ids)

def _dominant_topics(model: TopicModelResult, dtm: Optional[DocumentTermMatrix]) -> pd.DataFrame:
    dominant = model.dominant_topics()
    dominant['document'] = _document_ids(model, dtm)
    return dominant

def plot_coherence(results: pd.DataFrame) -> Figure:
    """Line chart of mean coherence against the number of topics"""
    with use_theme():
        fig, ax = plt.subplots(figsize=(8, 5))
        ax.plot(results['topics'], results['coherence'], color='#333333', linewidth=1)
        ax.scatter(results['topics'], results['coherence'], s=60, color='#333333', zorder=3)
        ax.set_title("Topic Coherence vs. Number of Topics (k)")
        ax.set_xlabel("Number of Topics (k)")
        ax.set_ylabel("Coherence Score (Higher is Better)")
        ax.set_xticks(list(results['topics']))
        fig.tight_layout()
    return fig

def plot_topic_terms(model: TopicModelResult, n_terms: int = 10,
                     topics: Optional[Iterable[int]] = None) -> Figure:
    """
    Bar charts of the most probable terms of each topic, one panel per topic.

    Args:
        model: A fitted LDA, STM or CTM result.
        n_terms: Number of top terms per topic.
        topics: Topic numbers (1-based) to show, None shows all.

    Returns:
        A matplotlib Figure.
    """
    _check_model(model)

    topics_beta = model.tidy_beta()
    if topics is not None:
        topics_beta = topics_beta[topics_beta['topic'].isin(list(topics))]
    if topics_beta.empty:
        raise ValueError("None of the requested topics exist in the model.")

    top_terms = (
        topics_beta.sort_values(['topic', 'beta'], ascending=[True, False], kind='stable')
        .groupby('topic')
        .head(n_terms)
    )

    topic_ids = sorted(top_terms['topic'].unique())
    ncol = min(3, len(topic_ids))
    nrow = math.ceil(len(topic_ids) / ncol)
    colors = sns.color_palette('hls', n_colors=len(topic_ids))

    with use_theme():
        fig, axes = plt.subplots(
            nrow, ncol,
            figsize=(4.5 * ncol, max(2.5, 0.3 * n_terms + 1) * nrow),
            squeeze=False
        )
        for ax, topic_id, color in zip(axes.flat, topic_ids, colors):
            # Highest beta on top
            panel = top_terms[top_terms['topic'] == topic_id].iloc[::-1]
            ax.barh(panel['term'].astype(str), panel['beta'], color=color)
            ax.set_title(f"Topic {topic_id}", loc='center', fontsize=11, **STRIP_STYLE)
            ax.tick_params(axis='y', length=0)

        for ax in list(axes.flat)[len(topic_ids):]:
            ax.set_visible(False)

        fig.suptitle(f"Top {n_terms} Terms per Topic", x=0.01, ha='left')
        fig.supxlabel("Beta (Topic-Word Probability)")
        fig.tight_layout()

    return fig

def plot_topic_frequency(model: TopicModelResult, dtm: DocumentTermMatrix,
                         threshold: float = DOMINANT_TOPIC_THRESHOLD) -> Figure:
    """
    Bar chart of how many documents have each topic as their dominant topic.

    Args:
        model: A fitted LDA, STM or CTM result.
        dtm: The document-term matrix the model was fitted on.
        threshold: Minimum gamma for a document to count towards its topic.

    Returns:
        A matplotlib Figure.
    """
    _check_model(model)

    doc_topics = _dominant_topics(model, dtm)
    doc_topics = doc_topics[doc_topics['gamma'] >= threshold]

    topic_counts = (
        doc_topics.groupby('topic').size()
        .reset_index(name='n')
        .sort_values('n', ascending=False, kind='stable')
    )
    if topic_counts.empty:
        logger.warning(f"No document reaches a topic proportion of {threshold}.")

    with use_theme():
        fig, ax = plt.subplots(figsize=(8, 6))
        bars = ax.bar(topic_counts['topic'].astype(str), topic_counts['n'], color='#2C7FB8', alpha=0.8)
        ax.bar_label(bars, padding=3, fontsize=10)
        ax.set_title("Number of Documents per Topic")
        ax.set_xlabel("Topic")
        ax.set_ylabel("Document Count")
        ax.margins(y=0.1)
        fig.tight_layout()

    return fig

def plot_topic_trends(model: TopicModelResult,
                      dtm: DocumentTermMatrix,
                      metadata: pd.DataFrame,
                      doc_id_col: str = "doc_id",
                      year_filter: Optional[Iterable[int]] = None) -> Figure:
    """
    Stacked percentage bars of dominant topics per publication year.

    Args:
        model: A fitted LDA, STM or CTM result.
        dtm: The document-term matrix the model was fitted on.
        metadata: Frame with a 'year' column and document ids.
        doc_id_col: Column of ``metadata`` matching the DTM document ids.
        year_filter: Years to keep, None keeps all.

    Returns:
        A matplotlib Figure.
    """
    if 'year' not in metadata.columns:
        raise ValueError("metadata must contain a 'year' column.")

    _check_model(model)

    if doc_id_col not in metadata.columns:
        raise ValueError(f"Column '{doc_id_col}' not found in metadata.")

    doc_topics = _dominant_topics(model, dtm)

    metadata_clean = metadata[[doc_id_col, 'year']].copy()
    metadata_clean['year'] = pd.to_numeric(metadata_clean['year'], errors='coerce')
    metadata_clean = metadata_clean.dropna(subset=['year'])
    metadata_clean[doc_id_col] = metadata_clean[doc_id_col].astype(str)

    if year_filter is not None:
        metadata_clean = metadata_clean[metadata_clean['year'].isin(list(year_filter))]

    trends_data = doc_topics.merge(
        metadata_clean, left_on='document', right_on=doc_id_col, how='left'
    ).dropna(subset=['year'])

    if trends_data.empty:
        raise ValueError("No documents could be matched to a publication year in metadata.")

    trends_data['year'] = trends_data['year'].astype(int)
    shares = pd.crosstab(trends_data['year'], trends_data['topic'], normalize='index')

    with use_theme():
        fig, ax = plt.subplots(figsize=(10, 6))
        shares.plot(
            kind='bar',
            stacked=True,
            ax=ax,
            width=0.9,
            color=sns.color_palette('Paired', n_colors=shares.shape[1])
        )
        ax.yaxis.set_major_formatter(PercentFormatter(1.0))
        ax.set_title("Topic Trends Over Time")
        ax.set_xlabel("Year")
        ax.set_ylabel("Percentage of Papers")
        plt.setp(ax.get_xticklabels(), rotation=45, ha='right')
        ax.legend(title="Topic", loc='upper center', bbox_to_anchor=(0.5, -0.18),
                  ncol=min(shares.shape[1], 10))
        fig.tight_layout()

    return fig
