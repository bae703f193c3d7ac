"""wpstack - snapshot, restore and TLS tooling for a containerized WordPress stack."""

__version__ = "0.1.0"
__author__ = "wpstack maintainers"
