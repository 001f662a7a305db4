import os
import logging
from typing import Dict, Any

from dotenv import load_dotenv

# Pick up SCOPUS_API_KEY and friends from a local .env file
load_dotenv()

# Folder Configuration
OUTPUT_FOLDER = "Output"
REPORT_FOLDER = "Report"

# Scopus API
SCOPUS_SEARCH_URL = "https://api.elsevier.com/content/search/scopus"
SCOPUS_ABSTRACT_URL = "https://api.elsevier.com/content/abstract"
SCOPUS_MAX_BATCH_SIZE = 100  # Hard limit of the Search API per request
REQUEST_TIMEOUT_SECONDS = 30
REQUEST_DELAY_SECONDS = 0.2  # Pause between paginated requests

# Preprocessing
MIN_WORD_LENGTH = 3  # Shorter tokens are dropped before stemming
MIN_TERM_FREQ = 3  # Minimum number of documents a term must appear in
MAX_TERM_FREQ = 0.5  # Maximum share of documents a term may appear in

# Topic Modeling Configuration
DEFAULT_SEED = 1729
GIBBS_ITERATIONS = 500
GIBBS_BURNIN = 100
DEFAULT_BETA = 0.1  # Topic-word prior
K_RANGE = (2, 20, 2)  # start, stop (inclusive), step
DEFAULT_K = 10
VEM_PASSES = 10  # Passes over the corpus for variational LDA
CTM_ITERATIONS = 300
STM_ITERATIONS = 300

# Plotting
FIGURE_DPI = 300
DOMINANT_TOPIC_THRESHOLD = 0.3  # Minimum gamma to count a document for a topic

def setup_folders() -> None:
    """Create necessary folders if they don't exist"""
    folders = [OUTPUT_FOLDER, REPORT_FOLDER]
    for folder in folders:
        try:
            os.makedirs(folder, exist_ok=True)
            logging.info(f"Ensured folder exists: {folder}")
        except Exception as e:
            logging.error(f"Failed to create folder {folder}: {str(e)}")
            raise

def validate_thresholds() -> None:
    """Validate threshold values"""
    threshold_checks = [
        (MAX_TERM_FREQ, "MAX_TERM_FREQ"),
        (DOMINANT_TOPIC_THRESHOLD, "DOMINANT_TOPIC_THRESHOLD")
    ]

    for threshold, name in threshold_checks:
        if not 0 <= threshold <= 1:
            raise ValueError(f"{name} must be between 0 and 1")

def validate_topic_settings() -> None:
    """Validate topic analysis settings"""
    start, stop, step = K_RANGE
    if start < 2 or start > stop:
        raise ValueError("K_RANGE must start at 2 or more and not exceed its stop value")

    if step <= 0:
        raise ValueError("K_RANGE step must be positive")

    if GIBBS_ITERATIONS <= 0 or CTM_ITERATIONS <= 0 or STM_ITERATIONS <= 0:
        raise ValueError("Iteration counts must be positive")

    if GIBBS_BURNIN < 0:
        raise ValueError("GIBBS_BURNIN cannot be negative")

    if DEFAULT_BETA <= 0:
        raise ValueError("DEFAULT_BETA must be positive")

def validate_text_limits() -> None:
    """Validate text processing limits"""
    if MIN_WORD_LENGTH <= 0:
        raise ValueError("MIN_WORD_LENGTH must be positive")

    if MIN_TERM_FREQ <= 0:
        raise ValueError("MIN_TERM_FREQ must be positive")

def validate_request_settings() -> None:
    """Validate Scopus request settings"""
    if not 0 < SCOPUS_MAX_BATCH_SIZE <= 100:
        raise ValueError("SCOPUS_MAX_BATCH_SIZE must be between 1 and 100")

    if REQUEST_TIMEOUT_SECONDS <= 0:
        raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")

    if REQUEST_DELAY_SECONDS < 0:
        raise ValueError("REQUEST_DELAY_SECONDS cannot be negative")

def validate_config() -> None:
    """
    Validate all configuration settings.
    Raises ValueError if any validation fails.
    """
    try:
        setup_folders()
        validate_thresholds()
        validate_topic_settings()
        validate_text_limits()
        validate_request_settings()
        logging.info("Configuration validated successfully")
    except Exception as e:
        logging.error(f"Configuration validation failed: {str(e)}")
        raise

def get_config() -> Dict[str, Any]:
    """
    Get configuration as a dictionary.
    Validates configuration before returning.
    """
    validate_config()
    return {
        # Folders
        'output_folder': OUTPUT_FOLDER,
        'report_folder': REPORT_FOLDER,

        # Scopus
        'scopus_search_url': SCOPUS_SEARCH_URL,
        'scopus_abstract_url': SCOPUS_ABSTRACT_URL,
        'scopus_max_batch_size': SCOPUS_MAX_BATCH_SIZE,
        'request_timeout_seconds': REQUEST_TIMEOUT_SECONDS,
        'request_delay_seconds': REQUEST_DELAY_SECONDS,

        # Preprocessing
        'min_word_length': MIN_WORD_LENGTH,
        'min_term_freq': MIN_TERM_FREQ,
        'max_term_freq': MAX_TERM_FREQ,

        # Topic Modeling
        'default_seed': DEFAULT_SEED,
        'gibbs_iterations': GIBBS_ITERATIONS,
        'gibbs_burnin': GIBBS_BURNIN,
        'default_beta': DEFAULT_BETA,
        'k_range': K_RANGE,
        'default_k': DEFAULT_K,
        'vem_passes': VEM_PASSES,
        'ctm_iterations': CTM_ITERATIONS,
        'stm_iterations': STM_ITERATIONS,

        # Plotting
        'figure_dpi': FIGURE_DPI,
        'dominant_topic_threshold': DOMINANT_TOPIC_THRESHOLD
    }

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    validate_config()
