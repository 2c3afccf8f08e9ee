"""
Lea verification backend.

Public read APIs for community-note proposals and verified researchers, plus
the verify-admin API that confirms researcher identities through ORCID and
OpenAlex and labels their Bluesky accounts through Ozone.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
