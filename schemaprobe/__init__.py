"""
schemaprobe: infer test schemas from Python source, then fuzz and
mutation-test against them.
"""

__version__ = "0.1.0"
