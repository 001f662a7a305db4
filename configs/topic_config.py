"""
Topic modeling configuration based on research standards.
References:
- Röder, Michael & Both, Andreas & Hinneburg, Alexander. (2015). Exploring the Space of Topic Coherence Measures. WSDM 2015 - Proceedings of the 8th ACM International Conference on Web Search and Data Mining. 399-408. 10.1145/2684822.2685324.
- David Mimno, Hanna Wallach, Edmund Talley, Miriam Leenders, and Andrew McCallum. 2011. Optimizing Semantic Coherence in Topic Models. In Proceedings of the 2011 Conference on Empirical Methods in Natural Language Processing, pages 262–272, Edinburgh, Scotland, UK.. Association for Computational Linguistics.
- Roberts, Margaret E. & Stewart, Brandon M. & Airoldi, Edoardo M. (2016). A Model of Text for Experimentation in the Social Sciences. Journal of the American Statistical Association, 111(515), 988-1003.
"""

TOPIC_CONFIG = {
    'coherence_measure': 'u_mass',  # Following Mimno et al. (2011), needs only document co-occurrence
    'coherence_top_n': 10,  # Top terms per topic scored for coherence
    'exclusivity_top_n': 10,  # Top terms per topic scored for exclusivity
    'entropy_epsilon': 1e-10,
    'supported_measures': ('u_mass', 'c_v', 'c_uci', 'c_npmi')
}
