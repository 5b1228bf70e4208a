"""Narrative extraction: one message in, zero or more candidate facts out.

  1. Singleton categories (location, faction, weather, time) — every catalog
     pattern is run with finditer; the match starting latest in the text wins.
  2. Combat — five independent signal groups are counted (each at most once);
     exclusion phrasing (death framing, hypotheticals, metaphors) zeroes the
     count. One ``combat`` candidate is emitted when the count is >= 1.
  3. Mechanics — bracketed tags such as [HP -10], [Gold +50],
     [Quest +"Name" status=Active], [Status +"Poisoned"]. When a MECHANICS:
     block is present only that block is scanned.
  4. People and items — bracketed system directives are masked out first, then
     every match is kept in text order.

The synchronizer depends only on the Matcher protocol (match(text) -> facts),
so a tokenizer-based matcher can replace RegexMatcher without other changes.
"""

from .matcher import Matcher, RegexMatcher, default_matcher, extract  # noqa: F401
from .rules import combat_signals, mask_directives  # noqa: F401
