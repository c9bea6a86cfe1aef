"""
Read-it-later core package.

This package currently focuses on the anchoring subsystem. It exposes
dataclasses for documents, highlights and notes, a canonical text projection
over article markup, selection-to-anchor conversion with quote-based
recovery, a highlight renderer that re-projects stored anchors onto freshly
parsed markup, and the controller, event bus and persistence adapters that
drive optimistic highlight creation.
"""
