"""
Per-software services: systemd control, version parsing, and the
domain operations (databases, users, config) for each managed software.

Import concrete services from their modules; ``resolver.ServiceResolver``
maps application ids onto them.
"""
