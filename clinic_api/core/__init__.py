"""
Cross-cutting building blocks: credential hashing, tokens, deadlines,
security logging and HTTP middleware.
"""
