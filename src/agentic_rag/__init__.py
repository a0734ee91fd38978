"""Agentic RAG assistant.

Answers questions over a document collection with retrieved context, an
optional file summarizer tool and streamed model output.
"""

__version__ = "0.1.0"
