import networkx as nx
import pandas as pd
import pytest
from matplotlib.figure import Figure

from analyzers.network import count_keyword_pairs, keyword_network

def test_count_keyword_pairs_is_unordered():
    keywords = pd.DataFrame({
        'paper_id': [1, 1, 2, 2, 3],
        'keyword': ['sprint', 'athletes', 'athletes', 'sprint', 'athletes']
    })
    pairs = count_keyword_pairs(keywords)

    assert pairs.to_dict('records') == [{'item1': 'athletes', 'item2': 'sprint', 'n': 2}]

def test_keyword_network(papers):
    result = keyword_network(papers, min_cooccurrence=2)

    pairs = result['pairs']
    assert list(pairs.columns) == ['item1', 'item2', 'n']
    assert pairs.to_dict('records') == [
        {'item1': 'athletes', 'item2': 'injury prediction', 'n': 2},
        {'item1': 'athletes', 'item2': 'training load', 'n': 2}
    ]

    graph = result['graph']
    assert isinstance(graph, nx.Graph)
    assert set(graph.nodes) == {'athletes', 'injury prediction', 'training load'}
    assert graph.nodes['athletes']['freq'] == 4
    assert graph.edges['athletes', 'training load']['n'] == 2
    assert isinstance(result['plot'], Figure)

def test_keyword_network_deduplicates_within_a_paper():
    data = pd.DataFrame({'author_keywords': [
        "Sprint; sprint; athletes",
        "athletes; SPRINT"
    ]})
    result = keyword_network(data, min_cooccurrence=2, layout="circle")
    assert result['pairs'].to_dict('records') == [{'item1': 'athletes', 'item2': 'sprint', 'n': 2}]
    assert result['graph'].nodes['sprint']['freq'] == 2

def test_keyword_network_top_n_limits_keywords(papers):
    result = keyword_network(papers, min_cooccurrence=1, top_n=2, layout="kk")
    assert result['graph'].number_of_nodes() <= 2

def test_keyword_network_validation(papers):
    with pytest.raises(ValueError, match="Column 'keywords' not found in data."):
        keyword_network(papers, keyword_col="keywords")

    with pytest.raises(ValueError, match="Unsupported layout"):
        keyword_network(papers, layout="spiral")

    with pytest.raises(ValueError, match="No keyword pairs found with min_cooccurrence >= 10"):
        keyword_network(papers, min_cooccurrence=10)

    empty = pd.DataFrame({'author_keywords': [None, "", "  "]})
    with pytest.raises(ValueError, match="No valid keyword data found."):
        keyword_network(empty)
