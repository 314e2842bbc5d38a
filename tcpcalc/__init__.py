"""TCP arithmetic-expression server, its expression evaluator, and a verifying load client."""

__version__ = "0.1.0"
__all__ = ["calculator", "server", "client"]