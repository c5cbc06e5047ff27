"""
govAIrn backend - persona-driven DAO vote recommendations.

Generates AI voting recommendations for governance proposals based on a
user's persona, caches them per (user, proposal, persona) and records votes.
"""

__version__ = "0.1.0"
