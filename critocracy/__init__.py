"""
Critocracy - a race along four branching paths of history.
"""
