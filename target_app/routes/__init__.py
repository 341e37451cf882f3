"""
Routes package for the stand-in target.

- api: JSON endpoints mounted under ``/api``
"""
