"""
Hyperchat: dispatch one prompt to several AI chat services at once.

The runtime core orchestrates one automated browser session per service,
submits prompts through per-service automation strategies, and manages the
presentation state of the conversation windows.
"""

__version__ = "0.1.0"
