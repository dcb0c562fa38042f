"""
siggen Command-Line Interface
=============================

This package provides the ``siggen`` command-line tool, a Click-based
application that sends commands to an HDMI test-signal generator,
prints every packet exchanged, monitors unsolicited status traffic and
decodes captured frames offline.
"""

__all__ = ["siggen"]
