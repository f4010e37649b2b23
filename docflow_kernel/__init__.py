"""
Docflow Kernel

A document approval workflow core with:
- Declarative per-document-type transition tables
- Role- and guard-gated transitions
- Optimistic concurrency on document versions
- Full auditability via hash chain
"""

__version__ = "0.1.0"
