"""
Barkwatch - Loud-event bridge for home automation.

Listens to a microphone, turns loud sounds (e.g. barking) into debounced
MQTT messages, and reports when nothing has been heard for a while.
"""

__version__ = "0.1.0"
__author__ = "Barkwatch Contributors"
