"""
integrations/ - Hooks wiring the router into pool lifecycles.

Modules:
- after_swap: post-swap backrun trigger with profit splitting
"""

from integrations.after_swap import AfterSwapBackrunner

__all__ = [
    "AfterSwapBackrunner",
]
