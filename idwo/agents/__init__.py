"""
LLM-backed agents.

AIAnalyst turns typed analysis prompts into AnalysisResult objects.
"""

from idwo.agents.analyst import AIAnalyst, build_prompt

__all__ = ["AIAnalyst", "build_prompt"]
