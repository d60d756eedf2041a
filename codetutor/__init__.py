"""
CodeTutor - Interactive Python Tutor

A terminal tutoring client that generates lessons and exercises, runs your
code in a sandboxed interpreter and asks an AI tutor for feedback.
"""

__version__ = "0.1.0"
