"""
Shared building blocks: base models, tenant row scoping, errors and logging.
"""
