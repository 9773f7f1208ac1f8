"""
Builder, body, query, decoding, tracing and dispatch internals.
"""
