import re
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

import nltk
import numpy as np
import pandas as pd
from scipy import sparse
from gensim.corpora import Dictionary
from nltk.corpus import stopwords
from nltk.stem.snowball import SnowballStemmer
from nltk.tokenize import RegexpTokenizer
from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS

from config import MIN_WORD_LENGTH, MIN_TERM_FREQ, MAX_TERM_FREQ

logger = logging.getLogger(__name__)

# Word tokens keep inner apostrophes ("don't"), everything else splits
_TOKENIZER = RegexpTokenizer(r"[^\W_]+(?:'[^\W_]+)*")
_STEMMER = SnowballStemmer("porter")
_DIGIT_PATTERN = re.compile(r"\d")

def clean_text(text: str) -> str:
    """
    Clean text by collapsing whitespace and dropping inline markup that Scopus
    leaves in titles and abstracts (<inf>, <sup>, ...).

    Args:
        text (str): Input text to clean

    Returns:
        str: Cleaned text
    """
    text = re.sub(r'</?(?:inf|sup|sub|i|b)>', '', text)
    # Replace multiple spaces with single space
    text = re.sub(r'\s+', ' ', text)
    return text.strip()

def truncate_text(text: str, max_length: int = 100, ellipsis: str = '...') -> str:
    """
    Truncate text to specified length while preserving word boundaries.

    Args:
        text (str): Input text to truncate
        max_length (int): Maximum length of output text
        ellipsis (str): String to append to truncated text

    Returns:
        str: Truncated text
    """
    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    # Find last space to preserve word boundary
    last_space = truncated.rfind(' ')
    if last_space > 0:
        truncated = truncated[:last_space]
    return truncated + ellipsis

def initialize_nltk() -> None:
    """
    Make sure the NLTK stopword corpus is available, downloading it once if
    missing.
    """
    try:
        nltk.data.find('corpora/stopwords')
    except LookupError:
        nltk.download('stopwords', quiet=True)

def get_stopwords() -> Set[str]:
    """
    English stop words: NLTK's corpus combined with scikit-learn's list.
    Falls back to scikit-learn's list alone when the NLTK corpus cannot be
    loaded.
    """
    words = set(ENGLISH_STOP_WORDS)
    initialize_nltk()
    try:
        words.update(stopwords.words('english'))
    except LookupError:
        logger.warning("NLTK stopword corpus unavailable, using scikit-learn stop words only.")
    return words

def tokenize(text: str) -> List[str]:
    """Lowercase word tokens of a single text."""
    return _TOKENIZER.tokenize(text.lower())

def is_missing(value) -> bool:
    if value is None or pd.isna(value):
        return True
    return not str(value).strip()

def preprocess_text(data: pd.DataFrame,
                    text_col: str = "abstract",
                    id_col: Optional[str] = None,
                    min_word_length: int = MIN_WORD_LENGTH,
                    custom_stopwords: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Tokenize, clean and stem text in preparation for topic modeling.

    Stop words, tokens containing digits and tokens shorter than
    ``min_word_length`` are removed, the rest are reduced with the Porter
    stemmer.

    Args:
        data: Frame holding the text.
        text_col: Column with the text to process.
        id_col: Column with document ids. When None, ids ``doc_1..doc_N`` are
            assigned to the rows that are neither NA nor empty strings.
            Whitespace-only rows are numbered too but contribute no tokens.
        min_word_length: Minimum word length to retain.
        custom_stopwords: Extra stems to drop after stemming.

    Returns:
        A frame with columns ``doc_id``, ``stem`` and ``n`` (count), sorted by
        ``n`` descending.
    """
    if text_col not in data.columns:
        raise ValueError(f"Column '{text_col}' not found in data.")

    # Only NA and empty strings are dropped; whitespace-only rows keep their id
    mask = data[text_col].notna() & (data[text_col].astype(str) != "")
    data_clean = data.loc[mask]

    if data_clean.empty:
        raise ValueError("No valid text data found after filtering NAs.")

    if id_col is None:
        doc_ids = [f"doc_{i}" for i in range(1, len(data_clean) + 1)]
    else:
        if id_col not in data.columns:
            raise ValueError(f"Column '{id_col}' not found in data.")
        doc_ids = data_clean[id_col].astype(str).tolist()

    stop_words = get_stopwords()
    custom = set(custom_stopwords) if custom_stopwords is not None else set()

    rows = []
    for doc_id, text in zip(doc_ids, data_clean[text_col].astype(str)):
        for word in tokenize(clean_text(text)):
            if word in stop_words or _DIGIT_PATTERN.search(word):
                continue
            if len(word) < min_word_length:
                continue
            stem = _STEMMER.stem(word)
            if stem in custom:
                continue
            rows.append((doc_id, stem))

    tokens = pd.DataFrame(rows, columns=['doc_id', 'stem'])
    word_counts = (
        tokens.groupby(['doc_id', 'stem'], sort=False)
        .size()
        .reset_index(name='n')
        .sort_values('n', ascending=False, kind='stable')
        .reset_index(drop=True)
    )

    logger.info(
        f"Preprocessing complete. {word_counts['doc_id'].nunique()} documents, "
        f"{word_counts['stem'].nunique()} unique stems."
    )
    return word_counts

@dataclass
class DocumentTermMatrix:
    """
    Sparse document-term counts with their row and column labels.

    Rows follow ``doc_ids`` and columns follow ``terms``; the conversions
    below keep that order so topic-word matrices from any backend can be
    aligned with ``terms``.
    """
    matrix: sparse.csr_matrix
    doc_ids: List[str]
    terms: List[str]

    @property
    def nrow(self) -> int:
        return self.matrix.shape[0]

    @property
    def ncol(self) -> int:
        return self.matrix.shape[1]

    @property
    def shape(self):
        return self.matrix.shape

    def doc_frequency(self) -> np.ndarray:
        """Number of documents containing each term."""
        return np.asarray((self.matrix > 0).sum(axis=0)).ravel()

    def to_corpus(self) -> List[List[tuple]]:
        """Gensim bag-of-words corpus, one list of (term id, count) per row."""
        corpus = []
        for i in range(self.nrow):
            row = self.matrix.getrow(i)
            corpus.append([(int(j), int(v)) for j, v in zip(row.indices, row.data)])
        return corpus

    def to_dictionary(self) -> Dictionary:
        """Gensim Dictionary whose ids are the column positions."""
        return Dictionary.from_corpus(self.to_corpus(), id2word=dict(enumerate(self.terms)))

    def to_texts(self) -> List[List[str]]:
        """Token lists with every term repeated by its count."""
        texts = []
        for bow in self.to_corpus():
            texts.append([self.terms[j] for j, count in bow for _ in range(count)])
        return texts

    def to_frame(self) -> pd.DataFrame:
        """Dense frame view, documents as index and terms as columns."""
        return pd.DataFrame(self.matrix.toarray(), index=self.doc_ids, columns=self.terms)

def create_dtm(word_counts: pd.DataFrame,
               min_term_freq: int = MIN_TERM_FREQ,
               max_term_freq: float = MAX_TERM_FREQ) -> DocumentTermMatrix:
    """
    Convert preprocessed word counts into a document-term matrix.

    Terms found in fewer than ``min_term_freq`` documents, or in more than a
    ``max_term_freq`` share of the documents, are dropped; documents left
    without terms are dropped afterwards.

    Args:
        word_counts: Frame with ``doc_id``, ``stem`` and ``n`` columns, as
            produced by preprocess_text().
        min_term_freq: Minimum document frequency of a retained term.
        max_term_freq: Maximum document-frequency share of a retained term.

    Returns:
        A DocumentTermMatrix.
    """
    if not {'doc_id', 'stem', 'n'}.issubset(word_counts.columns):
        raise ValueError("word_counts must have columns: doc_id, stem, n")

    doc_codes, doc_ids = pd.factorize(word_counts['doc_id'].astype(str))
    term_codes, terms = pd.factorize(word_counts['stem'].astype(str))

    matrix = sparse.coo_matrix(
        (word_counts['n'].to_numpy(dtype=np.int64), (doc_codes, term_codes)),
        shape=(len(doc_ids), len(terms))
    ).tocsr()
    dtm = DocumentTermMatrix(matrix, list(doc_ids), list(terms))

    n_docs = dtm.nrow
    doc_freq = dtm.doc_frequency()
    keep_terms = (doc_freq >= min_term_freq) & ((doc_freq / max(n_docs, 1)) <= max_term_freq)
    matrix = dtm.matrix[:, keep_terms]
    kept_terms = [t for t, keep in zip(dtm.terms, keep_terms) if keep]

    doc_sums = np.asarray(matrix.sum(axis=1)).ravel()
    keep_docs = doc_sums > 0
    matrix = matrix[keep_docs]
    kept_docs = [d for d, keep in zip(dtm.doc_ids, keep_docs) if keep]

    if matrix.shape[0] == 0:
        raise ValueError(
            "No documents remaining after filtering. "
            "Try relaxing min_term_freq or max_term_freq."
        )

    dtm = DocumentTermMatrix(sparse.csr_matrix(matrix), kept_docs, kept_terms)
    logger.info(f"DTM created: {dtm.nrow} documents, {dtm.ncol} terms.")
    return dtm
