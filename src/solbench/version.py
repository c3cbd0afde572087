"""Version info"""

__version__ = "0.1.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

__author__ = "solbench Contributors"
__license__ = "Apache-2.0"
__copyright__ = "Copyright 2026 solbench Contributors"

PROJECT_NAME = "solbench"
PROJECT_DESCRIPTION = (
    "A solution runner and adaptive micro-benchmark harness for puzzle solution programs"
)
