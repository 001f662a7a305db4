import logging
import re
from collections import Counter
from itertools import combinations
from typing import Any, Dict, Optional

import matplotlib.pyplot as plt
import networkx as nx
import numpy as np
import pandas as pd
from matplotlib.colors import LinearSegmentedColormap, Normalize

from config import DEFAULT_SEED
from utils.text_processing import is_missing, truncate_text
from utils.theme import use_theme, SUBTITLE_STYLE

logger = logging.getLogger(__name__)

LAYOUTS = {
    'fr': lambda graph, seed: nx.spring_layout(graph, weight='n', seed=seed),
    'kk': lambda graph, seed: nx.kamada_kawai_layout(graph, weight='n'),
    'circle': lambda graph, seed: nx.circular_layout(graph)
}

NODE_CMAP = LinearSegmentedColormap.from_list('keyword_frequency', ['#41B6C4', '#253494'])
NODE_SIZE_RANGE = (90, 1300)  # marker area in points^2
MAX_LABEL_LENGTH = 30

def _keyword_table(data: pd.DataFrame, keyword_col: str, separator: str) -> pd.DataFrame:
    """One row per (paper, keyword), keywords trimmed, lowercased and deduplicated per paper."""
    records = []
    for paper_id, cell in enumerate(data[keyword_col].astype(str), 1):
        for keyword in re.split(separator, cell):
            keyword = keyword.strip().lower()
            if len(keyword) > 2:
                records.append((paper_id, keyword))

    return pd.DataFrame(records, columns=['paper_id', 'keyword']).drop_duplicates()

def count_keyword_pairs(keywords: pd.DataFrame) -> pd.DataFrame:
    """
    Count how many papers each unordered keyword pair shares.

    Args:
        keywords: Frame with 'paper_id' and 'keyword' columns.

    Returns:
        Frame with 'item1', 'item2' (alphabetical within a pair) and 'n',
        sorted by 'n' descending.
    """
    pair_counts = Counter()
    for _, group in keywords.groupby('paper_id'):
        for pair in combinations(sorted(set(group['keyword'])), 2):
            pair_counts[pair] += 1

    pairs = pd.DataFrame(
        [(a, b, n) for (a, b), n in pair_counts.items()],
        columns=['item1', 'item2', 'n']
    )
    return pairs.sort_values(['n', 'item1', 'item2'], ascending=[False, True, True]).reset_index(drop=True)

def _draw_network(graph: nx.Graph, positions: Dict[str, Any], min_cooccurrence: int):
    freq = np.array([graph.nodes[node]['freq'] for node in graph.nodes], dtype=float)
    weights = np.array([graph.edges[edge]['n'] for edge in graph.edges], dtype=float)

    norm = Normalize(vmin=freq.min(), vmax=freq.max() if freq.max() > freq.min() else freq.min() + 1)
    size_min, size_max = NODE_SIZE_RANGE
    sizes = size_min + norm(freq) * (size_max - size_min)

    edge_scale = weights / weights.max()
    edge_colors = [(0.6, 0.6, 0.6, 0.25 + 0.65 * w) for w in edge_scale]
    edge_widths = 0.5 + 2.5 * edge_scale

    with use_theme(grid=False):
        fig, ax = plt.subplots(figsize=(12, 10))
        nx.draw_networkx_edges(graph, positions, ax=ax, edge_color=edge_colors, width=edge_widths)
        nx.draw_networkx_nodes(
            graph, positions, ax=ax,
            node_size=sizes,
            node_color=freq,
            cmap=NODE_CMAP,
            vmin=norm.vmin,
            vmax=norm.vmax,
            alpha=0.8
        )
        nx.draw_networkx_labels(
            graph, positions, ax=ax,
            labels={node: truncate_text(node, MAX_LABEL_LENGTH) for node in graph.nodes},
            font_size=8,
            bbox={'boxstyle': 'round,pad=0.3', 'facecolor': 'white', 'edgecolor': '#cccccc', 'alpha': 0.9}
        )

        colorbar = fig.colorbar(plt.cm.ScalarMappable(norm=norm, cmap=NODE_CMAP), ax=ax, shrink=0.6)
        colorbar.set_label("Frequency")

        ax.set_title("Keyword Co-occurrence Network", loc='center', fontsize=16)
        ax.text(0.5, 1.0, f"Minimum co-occurrence: {min_cooccurrence}",
                transform=ax.transAxes, ha='center', va='bottom', fontsize=11, **SUBTITLE_STYLE)
        ax.set_axis_off()
        fig.tight_layout()

    return fig

def keyword_network(data: pd.DataFrame,
                    keyword_col: str = "author_keywords",
                    separator: str = "; ",
                    min_cooccurrence: int = 2,
                    top_n: Optional[int] = 30,
                    layout: str = "fr",
                    seed: int = DEFAULT_SEED) -> Dict[str, Any]:
    """
    Build and draw a keyword co-occurrence network from author keywords.

    Args:
        data: Frame of papers.
        keyword_col: Column holding the keywords of each paper.
        separator: Regular expression separating keywords within a cell.
        min_cooccurrence: Minimum number of shared papers for an edge.
        top_n: Keep only the most frequent keywords, None keeps all.
        layout: 'fr' (Fruchterman-Reingold), 'kk' (Kamada-Kawai) or 'circle'.
        seed: Seed of the force-directed layout.

    Returns:
        A dictionary with:
          - 'graph': networkx Graph, edge attribute 'n', node attribute 'freq'
          - 'pairs': frame of item1, item2, n for the kept pairs
          - 'plot': matplotlib Figure of the network
    """
    if keyword_col not in data.columns:
        raise ValueError(f"Column '{keyword_col}' not found in data.")

    if layout not in LAYOUTS:
        raise ValueError(f"Unsupported layout '{layout}'. Choose from: {list(LAYOUTS)}")

    valid = data.loc[~data[keyword_col].map(is_missing)]
    if valid.empty:
        raise ValueError("No valid keyword data found.")

    keywords = _keyword_table(valid, keyword_col, separator)

    keyword_counts = (
        keywords.groupby('keyword').size()
        .reset_index(name='n')
        .sort_values('n', ascending=False, kind='stable')
    )

    if top_n is not None:
        top_keywords = set(keyword_counts['keyword'].head(top_n))
        keywords = keywords[keywords['keyword'].isin(top_keywords)]

    pairs = count_keyword_pairs(keywords)
    pairs = pairs[pairs['n'] >= min_cooccurrence].reset_index(drop=True)

    if pairs.empty:
        raise ValueError(
            f"No keyword pairs found with min_cooccurrence >= {min_cooccurrence}. "
            "Try lowering the threshold."
        )

    graph = nx.Graph()
    for row in pairs.itertuples(index=False):
        graph.add_edge(row.item1, row.item2, n=int(row.n))

    node_freq = keyword_counts.set_index('keyword')['n']
    nx.set_node_attributes(graph, {node: int(node_freq[node]) for node in graph.nodes}, 'freq')

    logger.info(
        f"Keyword network: {graph.number_of_nodes()} keywords, {graph.number_of_edges()} links."
    )

    positions = LAYOUTS[layout](graph, seed)
    figure = _draw_network(graph, positions, min_cooccurrence)

    return {
        'graph': graph,
        'pairs': pairs,
        'plot': figure
    }
