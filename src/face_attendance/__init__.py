"""Face-verified attendance package.

This package is organized by feature modules (attendance, capture,
verification, reports, ...) with a thin Flask controller layer on top of
service and repository layers.
"""
