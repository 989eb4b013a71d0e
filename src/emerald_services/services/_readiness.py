"""Readiness detection over process output.

Services announce readiness by writing a banner to their output. The
detector works on the chunks delivered by the output stream: a banner
contained in a single chunk is always detected, a banner split across
two chunks is not.
"""

import re

CONNECTOR_READY_PATTERN = re.compile(r"Connector started on")


def matches(chunk: str, pattern: re.Pattern[str]) -> bool:
    """Return True if the output chunk contains the readiness pattern.

    Args:
        chunk: A chunk of decoded process output.
        pattern: Compiled readiness pattern.

    Returns:
        Whether the pattern occurs anywhere in the chunk.
    """
    return pattern.search(chunk) is not None
