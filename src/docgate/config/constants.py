"""Constants for docgate."""

import tempfile
from pathlib import Path

from docgate import __version__

# Application constants
APP_NAME = "docgate"
APP_VERSION = __version__

# Default paths
DEFAULT_CONFIG_FILE = "docgate.yaml"
DEFAULT_LOG_DIR = ".logs"
DEFAULT_RESULT_DIR = "output"
DEFAULT_TEMP_ROOT = str(Path(tempfile.gettempdir()) / APP_NAME)

USER_CONFIG_FILE = Path.home() / ".config" / APP_NAME / "config.yaml"

# Config file locations (in order of priority)
CONFIG_LOCATIONS = [
    Path.cwd() / DEFAULT_CONFIG_FILE,
    USER_CONFIG_FILE,
]

# Admission defaults
DEFAULT_MAX_CONCURRENT_CONVERSIONS = 2
DEFAULT_MAX_QUEUE_SIZE = 10

# Timeout settings (seconds)
DEFAULT_ENGINE_TIMEOUT = 120.0
DEFAULT_OUTER_TIMEOUT = 300.0
DEFAULT_KILL_GRACE = 5.0
DEFAULT_ORPHAN_MAX_AGE = 3600.0

# Engine output kept per attempt (characters, tail of combined stdout/stderr)
DEFAULT_DIAGNOSTIC_LIMIT = 4000

# Workspace layout
WORKSPACE_INPUT_DIR = "input"
WORKSPACE_OUTPUT_DIR = "output"
WORKSPACE_PROFILE_DIR = "profile"
MAX_FILENAME_BYTES = 255
FALLBACK_FILENAME = "document"


# Placeholders accepted in engine argument templates
TEMPLATE_PLACEHOLDERS = frozenset(
    {"input", "input_dir", "output_dir", "output", "stem", "target", "profile_uri"}
)

# Format aliases normalised before routing
FORMAT_ALIASES = {
    "htm": "html",
    "markdown": "md",
    "text": "txt",
}

# Default engine table: formats LibreOffice renders with the highest fidelity
LIBREOFFICE_CONVERSIONS = [
    "doc->pdf",
    "docx->pdf",
    "odt->pdf",
    "rtf->pdf",
    "txt->pdf",
    "html->pdf",
    "xlsx->pdf",
    "xls->pdf",
    "ods->pdf",
    "csv->pdf",
    "pptx->pdf",
    "ppt->pdf",
    "odp->pdf",
    "doc->docx",
    "docx->doc",
    "doc->odt",
    "docx->odt",
    "odt->docx",
    "doc->rtf",
    "docx->rtf",
    "doc->txt",
    "docx->txt",
    "doc->html",
    "docx->html",
    "xls->xlsx",
    "xlsx->csv",
    "csv->xlsx",
    "ppt->pptx",
]

LIBREOFFICE_FORMAT_TOKENS = {
    "txt": "txt:Text",
    "html": "html:XHTML Writer File:UTF8",
}

LIBREOFFICE_ARGS = [
    "--headless",
    "--norestore",
    "-env:UserInstallation={profile_uri}",
    "--convert-to",
    "{target}",
    "--outdir",
    "{output_dir}",
    "{input}",
]

# Lower-fidelity local fallback
PANDOC_CONVERSIONS = [
    "docx->pdf",
    "docx->html",
    "docx->odt",
    "docx->md",
    "odt->docx",
    "odt->html",
    "html->docx",
    "html->odt",
    "html->md",
    "md->docx",
    "md->html",
    "md->pdf",
    "rtf->html",
]

PANDOC_ARGS = ["{input}", "--output", "{output}"]

# Well-known LibreOffice install locations
SOFFICE_WINDOWS_PATHS = [
    r"C:\Program Files\LibreOffice\program\soffice.exe",
    r"C:\Program Files (x86)\LibreOffice\program\soffice.exe",
]
SOFFICE_DARWIN_PATH = "/Applications/LibreOffice.app/Contents/MacOS/soffice"
SOFFICE_ENV_VAR = "DOCGATE_SOFFICE"
