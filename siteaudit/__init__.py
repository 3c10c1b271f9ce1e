"""
Site Audit Engine

Website-audit scoring and lead-qualification pipeline:
1. Scores technical signals of a prospect's website (six categories, 0-100)
2. Derives prioritized findings
3. Recommends a package tier
4. Tracks the outbound campaign lifecycle and drives lead status
"""

__version__ = "0.1.0"
