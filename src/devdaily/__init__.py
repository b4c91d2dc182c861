"""DevDaily catalog core.

Product review workflow, audit trail and the transaction runner that wraps
every multi-step catalog write.
"""

__version__ = "0.1.0"
