"""Library package for avatar composition.

This package contains the image pipeline that turns a background photo
into a 300x300 avatar with the hat overlay drawn on top, the helpers that
locate the bundled assets, and the error and response types used by the
API endpoints. See individual modules for details.
"""
