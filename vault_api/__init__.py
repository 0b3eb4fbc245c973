"""
Vault API

Hierarchical, access-controlled file and folder vault backed by
signed-URL object storage (Google Cloud Storage or S3-compatible).
"""

__version__ = "0.1.0"
