"""
NAT bridge rules package.

Each module exports an ``analyze()`` function that takes a SystemContext and
returns a list of Issue members.
"""
