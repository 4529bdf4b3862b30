from .markdown import MarkdownReport

__all__ = ["MarkdownReport"]
