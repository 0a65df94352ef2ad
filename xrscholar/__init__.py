"""Core of the XR Scholar citation-graph explorer."""
