"""
kernelcheck: cross-backend GEMM and attention kernel verification harness.
"""

__version__ = "0.1.0"
