"""
vadrtools Configuration Module

Centralized configuration for vadrtools commands.
Supports environment variables and auto-detection from PATH.

Configuration Priority (highest to lowest):
1. Explicit function arguments
2. Environment variables
3. Auto-detected defaults

Environment Variables:
    VADRINFERNALDIR     - Directory with Infernal executables (cmbuild, cmpress, cmemit)
    VADRHMMERDIR        - Directory with HMMER executables (hmmbuild, hmmpress)
    VADREASELDIR        - Directory with Easel miniapps
    VADRBLASTDIR        - Directory with BLAST+ executables (makeblastdb)
    VADRMODELDIR        - Default model directory
    VADRSCRIPTSDIR      - VADR scripts directory
    VADR_THREADS        - Default number of threads
    NCBI_EMAIL          - Email for NCBI Entrez queries (required by NCBI)
"""

import os
import shutil
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)

# Singleton config instance
_config_instance: Optional["Config"] = None

DEFAULT_NCBI_EMAIL = "vadrtools_user@example.com"

# Executables needed to build a model, by tool directory
BUILD_TOOLS = {
    "infernal_dir": ["cmbuild", "cmpress", "cmemit"],
    "hmmer_dir": ["hmmbuild", "hmmpress"],
    "blast_dir": ["makeblastdb"],
}

_ENV_DIRS = {
    "infernal_dir": "VADRINFERNALDIR",
    "hmmer_dir": "VADRHMMERDIR",
    "easel_dir": "VADREASELDIR",
    "blast_dir": "VADRBLASTDIR",
    "model_dir": "VADRMODELDIR",
    "scripts_dir": "VADRSCRIPTSDIR",
}


@dataclass
class Config:
    """
    vadrtools configuration container.

    Attributes:
        infernal_dir: Directory with Infernal executables
        hmmer_dir: Directory with HMMER executables
        easel_dir: Directory with Easel miniapps
        blast_dir: Directory with BLAST+ executables
        model_dir: Default model directory
        scripts_dir: VADR scripts directory
        threads: Default number of threads for external tools
        ncbi_email: Email for NCBI Entrez queries
        fetch_attempts: Number of attempts for each NCBI fetch
        fetch_sleep: Seconds to wait between NCBI fetch attempts
    """

    # Tool directories
    infernal_dir: Optional[Path] = None
    hmmer_dir: Optional[Path] = None
    easel_dir: Optional[Path] = None
    blast_dir: Optional[Path] = None

    # Data directories
    model_dir: Optional[Path] = None
    scripts_dir: Optional[Path] = None

    # Resources
    threads: int = 4

    # External services
    ncbi_email: str = DEFAULT_NCBI_EMAIL
    fetch_attempts: int = 5
    fetch_sleep: float = 3.0

    # Internal state
    _initialized: bool = field(default=False, repr=False)

    def __post_init__(self):
        """Initialize configuration from environment and auto-detection."""
        if not self._initialized:
            self._load_from_environment()
            self._auto_detect_paths()
            self._initialized = True

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""

        # Tool and data directories
        for attr, env_var in _ENV_DIRS.items():
            if getattr(self, attr) is None and os.environ.get(env_var):
                setattr(self, attr, Path(os.environ[env_var]))

        # Resources
        if os.environ.get("VADR_THREADS"):
            try:
                self.threads = int(os.environ["VADR_THREADS"])
            except ValueError:
                logger.warning(f"Ignoring non-integer VADR_THREADS: {os.environ['VADR_THREADS']}")

        # NCBI
        if os.environ.get("NCBI_EMAIL"):
            self.ncbi_email = os.environ["NCBI_EMAIL"]
        elif os.environ.get("ENTREZ_EMAIL"):
            self.ncbi_email = os.environ["ENTREZ_EMAIL"]

    def _auto_detect_paths(self) -> None:
        """Auto-detect tool directories from PATH if not explicitly configured."""
        for attr, tools in BUILD_TOOLS.items():
            if getattr(self, attr) is not None:
                continue
            found = shutil.which(tools[0])
            if found:
                setattr(self, attr, Path(found).parent)

        if self.easel_dir is None and self.infernal_dir is not None:
            self.easel_dir = self.infernal_dir

    def executable(self, name: str) -> str:
        """Path to an external executable.

        Looks in the configured tool directory first, then PATH.

        Raises:
            FileNotFoundError: If the executable cannot be found
        """
        for attr, tools in BUILD_TOOLS.items():
            if name in tools:
                tool_dir = getattr(self, attr)
                if tool_dir is not None and (tool_dir / name).exists():
                    return str(tool_dir / name)
        found = shutil.which(name)
        if found:
            return found
        raise FileNotFoundError(f"Executable {name} not found; set {self._env_hint(name)} or add it to PATH")

    @staticmethod
    def _env_hint(name: str) -> str:
        for attr, tools in BUILD_TOOLS.items():
            if name in tools:
                return _ENV_DIRS[attr]
        return "PATH"

    def validate(self, require_build_tools: bool = True) -> tuple[bool, list[str]]:
        """
        Validate configuration.

        Args:
            require_build_tools: Whether model building executables are required

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        errors: List[str] = []

        for attr, env_var in _ENV_DIRS.items():
            path = getattr(self, attr)
            if path is not None and not path.exists():
                errors.append(f"{env_var} directory not found: {path}")

        if require_build_tools:
            for tools in BUILD_TOOLS.values():
                for tool in tools:
                    try:
                        self.executable(tool)
                    except FileNotFoundError as e:
                        errors.append(str(e))

        if self.threads < 1:
            errors.append(f"Threads must be at least 1, got {self.threads}")

        return len(errors) == 0, errors

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary."""
        result: Dict[str, Any] = {}
        for attr in _ENV_DIRS:
            path = getattr(self, attr)
            result[attr] = str(path) if path else None
        result["threads"] = self.threads
        result["ncbi_email"] = self.ncbi_email
        result["fetch_attempts"] = self.fetch_attempts
        result["fetch_sleep"] = self.fetch_sleep
        return result

    def to_shell_exports(self) -> str:
        """Generate shell export statements for this configuration."""
        lines = ["# vadrtools Configuration Exports"]

        for attr, env_var in _ENV_DIRS.items():
            path = getattr(self, attr)
            if path:
                lines.append(f'export {env_var}="{path}"')
        lines.append(f'export VADR_THREADS="{self.threads}"')
        if self.ncbi_email != DEFAULT_NCBI_EMAIL:
            lines.append(f'export NCBI_EMAIL="{self.ncbi_email}"')

        return "\n".join(lines)

    def print_status(self) -> None:
        """Print configuration status to stdout."""
        print("vadrtools Configuration Status")
        print("=" * 50)

        def status_icon(path: Optional[Path]) -> str:
            if path is None:
                return "[ ] Not configured"
            elif path.exists():
                return f"[✓] {path}"
            else:
                return f"[✗] {path} (NOT FOUND)"

        print(f"Infernal:    {status_icon(self.infernal_dir)}")
        print(f"HMMER:       {status_icon(self.hmmer_dir)}")
        print(f"Easel:       {status_icon(self.easel_dir)}")
        print(f"BLAST+:      {status_icon(self.blast_dir)}")
        print(f"Models:      {status_icon(self.model_dir)}")
        print(f"Threads:     {self.threads}")
        print(f"NCBI Email:  {self.ncbi_email}")
        print("=" * 50)


def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        Config: The singleton configuration instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def reset_config() -> None:
    """Reset the global configuration instance (useful for testing)."""
    global _config_instance
    _config_instance = None


def print_setup_instructions() -> None:
    """Print setup instructions for users."""
    print("""
vadrtools Configuration Setup
=============================

Building models requires Infernal, HMMER and BLAST+:

1. INFERNAL (cmbuild, cmpress, cmemit)

     export VADRINFERNALDIR="/path/to/infernal/bin"

2. HMMER (hmmbuild, hmmpress)

     export VADRHMMERDIR="/path/to/hmmer/bin"

3. BLAST+ (makeblastdb)

     export VADRBLASTDIR="/path/to/ncbi-blast/bin"

   Or install all three via conda:
     conda install -c bioconda infernal hmmer blast

4. NCBI EMAIL (Required for record downloads)

   export NCBI_EMAIL="your.email@institution.edu"

After setting environment variables, verify with:

   vadrtools-config
""")
