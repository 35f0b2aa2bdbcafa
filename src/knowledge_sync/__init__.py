"""Knowledge sync engine: keeps external knowledge sources mirrored as documents."""

__version__ = "0.1.0"
