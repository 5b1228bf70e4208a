"""Consumer modules that react to tracker events.

Each consumer is constructed with the bus, gate evaluator and store it works
against; none of them reach for process-wide state.
"""

from narrative_tracker.consumers.rumors import Rumor, RumorMill

__all__ = ["Rumor", "RumorMill"]
