"""External conversion engines: descriptors, discovery and execution."""

from docgate.engines.descriptor import EngineDescriptor
from docgate.engines.executor import EngineExecutor
from docgate.engines.libreoffice import check_engines_available, find_soffice
from docgate.engines.process import kill_process_tree

__all__ = [
    "EngineDescriptor",
    "EngineExecutor",
    "check_engines_available",
    "find_soffice",
    "kill_process_tree",
]
