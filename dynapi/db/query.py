"""Filter matching for document store backends that hold plain dicts."""

from typing import Any, Dict, Optional


class QueryEngine:
    """Top-level field equality over in-memory documents."""

    @staticmethod
    def match(document: Dict[str, Any], query: Optional[Dict[str, Any]]) -> bool:
        """Check if a document matches a query.

        Args:
            document: Document to check
            query: Field/value pairs that must all be equal; empty matches all

        Returns:
            True if document matches query, False otherwise
        """
        if not query:
            return True
        return all(document.get(field) == value for field, value in query.items())
