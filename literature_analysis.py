import argparse
import os
import sys
import logging
from pathlib import Path

import pandas as pd

from analyzers.topic import train_lda, select_optimal_k
from analyzers.comparison import compare_models
from analyzers.network import keyword_network
from configs.models import ModelConfig
from config import (
    OUTPUT_FOLDER,
    REPORT_FOLDER,
    K_RANGE,
    MIN_TERM_FREQ,
    MAX_TERM_FREQ,
    DEFAULT_SEED,
    validate_config
)
from utils.scopus_client import set_api_key, search_scopus
from utils.text_processing import initialize_nltk, preprocess_text, create_dtm
from utils.visualization import (
    VisualizationGenerator,
    plot_topic_terms,
    plot_topic_frequency,
    plot_topic_trends
)

def parse_k_range(value: str):
    """
    Parse 'start:stop:step' (stop inclusive) or a comma-separated list of k.
    """
    try:
        if ':' in value:
            start, stop, step = (int(part) for part in value.split(':'))
            return range(start, stop + 1, step)
        return [int(part) for part in value.split(',') if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid k range '{value}'. Use start:stop:step or a comma-separated list."
        )

def parse_arguments(argv=None):
    """
    Parse command line arguments for the literature analysis workflow.

    Returns:
        An argparse.Namespace with the parsed arguments.
    """
    start, stop, step = K_RANGE
    parser = argparse.ArgumentParser(description='Scopus Literature Mining and Topic Modeling')
    source = parser.add_mutually_exclusive_group()
    source.add_argument('-q', '--query',
                        type=str,
                        help='Scopus query, e.g. TITLE-ABS-KEY("sport science")')
    source.add_argument('-i', '--input-csv',
                        type=str,
                        help='Analyze papers from a CSV file instead of querying Scopus')
    parser.add_argument('--max-count',
                        type=int,
                        default=200,
                        help='Maximum number of papers to retrieve')
    parser.add_argument('-k', '--k-range',
                        type=parse_k_range,
                        default=range(start, stop + 1, step),
                        help='Candidate numbers of topics, start:stop:step or a list')
    parser.add_argument('--method',
                        choices=list(ModelConfig.LDA_METHODS),
                        default='gibbs',
                        help='LDA fitting method')
    parser.add_argument('--min-term-freq',
                        type=int,
                        default=MIN_TERM_FREQ,
                        help='Minimum number of documents a term must appear in')
    parser.add_argument('--max-term-freq',
                        type=float,
                        default=MAX_TERM_FREQ,
                        help='Maximum share of documents a term may appear in')
    parser.add_argument('--compare',
                        action='store_true',
                        help='Also train STM and CTM and compare all models')
    parser.add_argument('--network',
                        action='store_true',
                        help='Draw the author keyword co-occurrence network')
    parser.add_argument('--seed',
                        type=int,
                        default=DEFAULT_SEED,
                        help='Random seed')
    parser.add_argument('-o', '--output',
                        type=str,
                        default=OUTPUT_FOLDER,
                        help='Folder for figures and CSV files')
    parser.add_argument('-l', '--list-models',
                        action='store_true',
                        help='List available topic models')
    return parser.parse_args(argv)

def load_papers(args) -> pd.DataFrame:
    """Papers from the CSV file or a fresh Scopus search."""
    if args.input_csv:
        logging.info(f"Loading papers from {args.input_csv}")
        return pd.read_csv(args.input_csv)

    set_api_key()
    papers = search_scopus(args.query, max_count=args.max_count)
    return papers

def run_analysis(papers: pd.DataFrame, args) -> None:
    """
    Run the full workflow on a frame of papers:
      1. Preprocessing and document-term matrix
      2. Coherence-based selection of k and the final LDA model
      3. Topic plots (terms, frequency, trends)
      4. Optional keyword network and model comparison
    """
    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    papers = papers.reset_index(drop=True)
    papers['doc_id'] = [f"doc_{i}" for i in range(1, len(papers) + 1)]

    word_counts = preprocess_text(papers, text_col='abstract', id_col='doc_id')
    dtm = create_dtm(word_counts, min_term_freq=args.min_term_freq, max_term_freq=args.max_term_freq)

    with VisualizationGenerator(output_dir) as viz:
        k_selection = select_optimal_k(
            dtm, k_range=args.k_range, method=args.method, seed=args.seed, plot=False
        )
        viz.save(k_selection['plot'], 'coherence_by_k')
        k_selection['results'].to_csv(output_dir / 'coherence_by_k.csv', index=False)

        model = train_lda(dtm, k=k_selection['optimal_k'], method=args.method, seed=args.seed)
        model.tidy_beta().to_csv(output_dir / 'topic_terms.csv', index=False)
        model.tidy_gamma().to_csv(output_dir / 'document_topics.csv', index=False)

        viz.save(plot_topic_terms(model), 'topic_terms')
        viz.save(plot_topic_frequency(model, dtm), 'topic_frequency')

        if 'year' in papers.columns:
            viz.save(plot_topic_trends(model, dtm, papers), 'topic_trends')
        else:
            logging.warning("No 'year' column, skipping topic trends.")

        if args.network:
            try:
                network = keyword_network(papers)
                viz.save(network['plot'], 'keyword_network')
                network['pairs'].to_csv(output_dir / 'keyword_pairs.csv', index=False)
            except ValueError as e:
                logging.warning(f"Keyword network skipped: {str(e)}")

        if args.compare:
            comparison = compare_models(dtm, k=k_selection['optimal_k'], seed=args.seed,
                                        lda_method=args.method)
            comparison['metrics'].to_csv(output_dir / 'model_comparison.csv', index=False)
            logging.info(f"Recommended model: {comparison['recommendation']}")

    logging.info(f"Results written to {output_dir}")

def main(argv=None):
    """
    Main entry point for the command-line usage.
    Performs:
      1. Argument parsing
      2. Optional listing of topic models
      3. Configuration validation and NLTK initialization
      4. Paper retrieval (Scopus or CSV)
      5. The analysis workflow with run_analysis()
    """
    os.makedirs(REPORT_FOLDER, exist_ok=True)

    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.path.join(REPORT_FOLDER, 'analysis.log'))
        ]
    )

    args = parse_arguments(argv)

    # Handle --list-models flag
    if args.list_models:
        logging.info("\nAvailable topic models:")
        for key, description in ModelConfig.list_available_models().items():
            logging.info(f"  {key}: {description}")
        return

    if not args.query and not args.input_csv:
        logging.error("Either --query or --input-csv is required.")
        sys.exit(1)

    try:
        validate_config()
        initialize_nltk()

        papers = load_papers(args)
        if papers.empty:
            logging.warning("No papers to analyze.")
            return

        run_analysis(papers, args)

    except Exception as e:
        logging.error(f"Error in main execution: {str(e)}", exc_info=True)
        sys.exit(1)

if __name__ == "__main__":
    main()
