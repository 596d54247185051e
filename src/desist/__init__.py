"""
DESIST - Stealth & Emergency Coordination Core

This package provides the coordination core of the DESIST personal-safety
application: the disguise (stealth) session, the emergency evidence
pipeline, and the single authority that arbitrates between them.

IMPORTANT: This is a safety-critical component.
A user may be operating the device under hostile observation.
"""

__version__ = "0.1.0"
__author__ = "DESIST Engineering Team"
