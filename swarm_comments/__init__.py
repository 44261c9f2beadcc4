"""swarm-comments -- threaded comments over shared Swarm feeds."""

__version__ = "0.3.0"
