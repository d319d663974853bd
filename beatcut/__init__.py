"""beatcut: audio-driven keep/remove decisions for trimming footage to music."""

__version__ = "0.1.0"
