"""
Modules package for homectl.

Modules add behavior on top of the core kernel.
"""
