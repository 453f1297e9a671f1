"""
Fetching reference records from NCBI.

Records are downloaded with Bio.Entrez efetch. NCBI occasionally drops
requests, so each fetch is attempted several times before giving up.
"""

import logging
import time
from pathlib import Path
from typing import Optional, Union

from Bio import Entrez

from ..config import get_config

logger = logging.getLogger(__name__)

EFETCH_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/efetch.fcgi?db={db}&id={id}&rettype={rettype}&retmode=text"


def efetch_url(accession: str, db: str = "nuccore", rettype: str = "gb") -> str:
    """URL that efetch uses for a record."""
    return EFETCH_URL.format(db=db, id=accession, rettype=rettype)


def fetch_to_file(
    filepath: Union[str, Path],
    accession: str,
    db: str = "nuccore",
    rettype: str = "fasta",
    attempts: Optional[int] = None,
    sleep: Optional[float] = None,
) -> Path:
    """Download a record and write it to a file.

    Args:
        filepath: Output file
        accession: Accession (or accession.version)
        db: Entrez database
        rettype: Record format, "fasta", "gb" or "ft"
        attempts: Number of attempts (default from config)
        sleep: Seconds between attempts (default from config)

    Returns:
        Path of the written file

    Raises:
        RuntimeError: If every attempt fails or returns nothing
    """
    config = get_config()
    if attempts is None:
        attempts = config.fetch_attempts
    if sleep is None:
        sleep = config.fetch_sleep
    Entrez.email = config.ncbi_email

    path = Path(filepath)
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            handle = Entrez.efetch(db=db, id=accession, rettype=rettype, retmode="text")
            try:
                text = handle.read()
            finally:
                handle.close()
            if isinstance(text, bytes):
                text = text.decode()
            if text.strip():
                with open(path, "w") as f:
                    f.write(text)
                return path
            last_error = "empty response"
        except OSError as e:
            # urllib HTTPError and URLError are both OSErrors
            last_error = str(e)
        logger.warning(f"Fetch of {accession} ({rettype}) attempt {attempt}/{attempts} failed: {last_error}")
        if attempt < attempts:
            time.sleep(sleep)

    raise RuntimeError(
        f"Unable to fetch {accession} ({rettype}) from {db} after {attempts} attempts: {last_error}"
    )
