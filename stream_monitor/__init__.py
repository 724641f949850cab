"""
Stream Monitor - live-stream analytics: rankings and multiview event feed.

Architecture:
- engine/: Pure core (ranking sort engine, event classifier, event timeline)
- datafeed/: Backend client and the multiview poll loop
- ui/: Console rendering (Rich)
"""

__version__ = "0.1.0"
