from .topic import TopicModelResult, train_lda, select_optimal_k
from .comparison import compare_models, calculate_exclusivity, convert_dtm_to_stm
from .network import keyword_network
from .statistics import StatisticalAnalyzer

__all__ = [
    'TopicModelResult',
    'train_lda',
    'select_optimal_k',
    'compare_models',
    'calculate_exclusivity',
    'convert_dtm_to_stm',
    'keyword_network',
    'StatisticalAnalyzer'
]
