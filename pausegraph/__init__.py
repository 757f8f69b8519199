"""
PauseGraph - An async graph workflow engine with checkpointed suspend/resume.

Build workflows from nodes, edges, conditional branching and loops; pause a
session at any node to wait for outside input, and resume it later from the
stored checkpoint.
"""

__version__ = "1.0.0"
