"""Live job queue monitor for IBM Quantum Platform accounts."""
