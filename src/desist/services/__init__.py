"""
DESIST Services Layer

Stealth and emergency session managers and the coordination core
that arbitrates between them.
"""
