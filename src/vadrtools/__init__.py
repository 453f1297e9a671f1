"""
vadrtools: model building and output handling for VADR viral annotation

Builds VADR models from reference GenBank accessions, and reads, writes,
summarizes and validates the tabular output of VADR annotation runs.
"""

__version__ = "1.0.0"
__author__ = "vadrtools contributors"

from vadrtools.alerts import AlertCatalog, default_catalog
from vadrtools.config import Config, get_config
from vadrtools.logging import setup_logging, get_logger
from vadrtools.validation import validate_model_dir, validate_output_dir

__all__ = [
    "AlertCatalog",
    "default_catalog",
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "validate_model_dir",
    "validate_output_dir",
    "__version__",
]
