from .text_processing import preprocess_text, create_dtm, DocumentTermMatrix
from .theme import theme_sportminer, use_theme

__all__ = [
    'preprocess_text',
    'create_dtm',
    'DocumentTermMatrix',
    'theme_sportminer',
    'use_theme'
]

# Note: visualization and scopus_client are imported by clients directly to avoid circular imports
