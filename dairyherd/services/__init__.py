"""
Animal lifecycle and breeding eligibility engine.

Pure functions over already farm-scoped records; nothing here touches the
database or the request.
"""
