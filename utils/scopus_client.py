import os
import math
import time
import logging
from typing import Any, Dict, List, Optional

import pandas as pd
import requests
from dotenv import load_dotenv
from tqdm import tqdm

from config import (
    SCOPUS_SEARCH_URL,
    SCOPUS_ABSTRACT_URL,
    SCOPUS_MAX_BATCH_SIZE,
    REQUEST_TIMEOUT_SECONDS,
    REQUEST_DELAY_SECONDS
)
from utils.text_processing import is_missing

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = (
    "No API key provided. Either pass it to set_api_key() or set "
    "the SCOPUS_API_KEY environment variable."
)

# Scopus entry field -> normalized column
ENTRY_COLUMNS = {
    'title': 'dc:title',
    'abstract': 'dc:description',
    'author_keywords': 'authkeywords',
    'doi': 'prism:doi',
    'eid': 'eid'
}

_api_key: Optional[str] = None

class ScopusError(RuntimeError):
    """Raised when a Scopus request cannot be completed."""

def set_api_key(api_key: Optional[str] = None) -> None:
    """
    Configure the Scopus API key for the current process.

    Args:
        api_key: The key. When None, SCOPUS_API_KEY is read from the
            environment (a local .env file is loaded first).
    """
    global _api_key

    if api_key is None:
        load_dotenv()
        api_key = os.getenv('SCOPUS_API_KEY', '')

    if not api_key:
        raise ValueError(MISSING_KEY_MESSAGE)

    _api_key = api_key
    logger.info("Scopus API key configured successfully.")

def get_api_key() -> str:
    """The configured key, falling back to the SCOPUS_API_KEY environment variable."""
    api_key = _api_key or os.getenv('SCOPUS_API_KEY', '')
    if not api_key:
        raise ValueError(MISSING_KEY_MESSAGE)
    return api_key

def _headers(api_key: str) -> Dict[str, str]:
    return {'X-ELS-APIKey': api_key, 'Accept': 'application/json'}

def _fetch_page(query: str, view: str, start: int, count: int) -> Dict[str, Any]:
    response = requests.get(
        SCOPUS_SEARCH_URL,
        params={'query': query, 'view': view, 'start': start, 'count': count},
        headers=_headers(get_api_key()),
        timeout=REQUEST_TIMEOUT_SECONDS
    )
    response.raise_for_status()
    return response.json()['search-results']

def _page_entries(page: Dict[str, Any]) -> List[Dict[str, Any]]:
    # An empty result set comes back as a single entry carrying an 'error' field
    return [entry for entry in page.get('entry', []) if 'error' not in entry]

def _entries_to_frame(entries: List[Dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(entries)

    for column, field_name in ENTRY_COLUMNS.items():
        df[column] = df[field_name] if field_name in df.columns else None

    if 'prism:coverDate' in df.columns:
        df['year'] = df['prism:coverDate'].map(lambda d: None if is_missing(d) else str(d)[:4])
    else:
        df['year'] = None

    return df

def search_scopus(query: str,
                  max_count: float = 200,
                  batch_size: int = 100,
                  view: str = "COMPLETE",
                  verbose: bool = True) -> pd.DataFrame:
    """
    Retrieve papers matching a Scopus query, following pagination.

    Args:
        query: Scopus query, e.g. 'TITLE-ABS-KEY("sport science")'.
        max_count: Maximum number of papers, math.inf retrieves everything.
        batch_size: Records per request, at most 100.
        view: 'STANDARD' or 'COMPLETE'.
        verbose: Log progress and show a progress bar.

    Returns:
        A frame with the raw Scopus entry fields plus 'title', 'abstract',
        'author_keywords', 'year', 'doi' and 'eid'. Empty when nothing matched.
    """
    if not isinstance(query, str) or not query:
        raise ValueError("Query must be a non-empty character string.")

    if batch_size > SCOPUS_MAX_BATCH_SIZE:
        logger.warning(f"batch_size cannot exceed {SCOPUS_MAX_BATCH_SIZE}. Setting to {SCOPUS_MAX_BATCH_SIZE}.")
        batch_size = SCOPUS_MAX_BATCH_SIZE

    if verbose:
        logger.info("Starting Scopus search...")

    entries = []
    try:
        with tqdm(desc="Scopus pages", unit="paper", disable=not verbose) as progress:
            start = 0
            total = max_count
            while start < total:
                count = int(min(batch_size, total - start))
                page = _fetch_page(query, view, start, count)
                page_entries = _page_entries(page)
                if not page_entries:
                    break

                if start == 0:
                    available = int(page.get('opensearch:totalResults', 0))
                    total = min(max_count, available)
                    progress.total = None if math.isinf(total) else int(total)

                entries.extend(page_entries)
                progress.update(len(page_entries))
                start += len(page_entries)

                if start < total:
                    time.sleep(REQUEST_DELAY_SECONDS)

    except (requests.exceptions.RequestException, KeyError, ValueError) as e:
        raise ScopusError(
            f"Scopus search failed: {e}\nPlease check your query syntax and API key."
        ) from e

    if not entries:
        logger.warning("No results found for the given query.")
        return pd.DataFrame()

    df = _entries_to_frame(entries)

    if verbose:
        logger.info(f"Retrieved {len(df)} papers.")

    return df

def _mainterm_value(term) -> Optional[str]:
    if term is None:
        return None
    if isinstance(term, dict):
        if not term:
            return None
        value = term.get('$', list(term.values())[-1])
    else:
        value = term
    if isinstance(value, (dict, list)) or value is None:
        return None
    return str(value)

def get_indexed_keywords(doi: Optional[str] = None,
                         eid: Optional[str] = None,
                         verbose: bool = False) -> Optional[str]:
    """
    Indexed (controlled vocabulary) keywords of one paper.

    One Abstract Retrieval request is made per call, looked up by DOI when
    available, by EID otherwise.

    Returns:
        Keywords joined with " | ", or None when the paper has none, no
        identifier was given or the request failed.
    """
    if not is_missing(doi):
        id_type, id_val = 'doi', str(doi)
    elif not is_missing(eid):
        id_type, id_val = 'eid', str(eid)
    else:
        return None

    try:
        response = requests.get(
            f"{SCOPUS_ABSTRACT_URL}/{id_type}/{id_val}",
            params={'view': 'FULL'},
            headers=_headers(get_api_key()),
            timeout=REQUEST_TIMEOUT_SECONDS
        )
        response.raise_for_status()
        content = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        if verbose:
            logger.warning(f"API Error for {id_val}: {e}")
        return None

    idxterms = (content.get('abstracts-retrieval-response') or {}).get('idxterms') or {}
    mainterms = idxterms.get('mainterm')
    if mainterms is None:
        return None
    if not isinstance(mainterms, list):
        mainterms = [mainterms]

    terms = []
    for term in mainterms:
        value = _mainterm_value(term)
        if value and value not in terms:
            terms.append(value)

    return " | ".join(terms) if terms else None

def add_indexed_keywords(data: pd.DataFrame,
                         doi_col: str = "doi",
                         eid_col: str = "eid",
                         verbose: bool = False) -> pd.DataFrame:
    """
    Copy of ``data`` with an 'indexed_keywords' column, one Abstract
    Retrieval request per row.
    """
    result = data.copy()
    dois = result[doi_col] if doi_col in result.columns else pd.Series(None, index=result.index)
    eids = result[eid_col] if eid_col in result.columns else pd.Series(None, index=result.index)

    keywords = []
    for doi, eid in tqdm(zip(dois, eids), total=len(result), desc="Indexed keywords", disable=not verbose):
        keywords.append(get_indexed_keywords(doi=doi, eid=eid, verbose=verbose))
        time.sleep(REQUEST_DELAY_SECONDS)

    result['indexed_keywords'] = keywords
    return result
