"""Bid admission control — per-contractor fixed-window counters.

Learn: a contractor may submit N bids per window W. The counter resets
wholesale once the window has expired; it is not a rolling average, so a
contractor can burst N requests at the very end of one window and N more
at the start of the next.
"""
