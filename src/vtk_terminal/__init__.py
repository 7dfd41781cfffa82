"""Host-side protocol layer for VTK cash-acceptance payment terminals."""

__version__ = "0.1.0"
