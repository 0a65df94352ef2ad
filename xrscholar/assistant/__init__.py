"""Helpers for the language-model assistant driving the graph."""

from .clustering import CLUSTER_PROMPT, build_cluster_prompt, parse_cluster_response

__all__ = ["CLUSTER_PROMPT", "build_cluster_prompt", "parse_cluster_response"]
