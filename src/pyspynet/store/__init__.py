"""Key-value store layer.

Two tiers sit behind one four-operation contract: a remote durable store
and an in-process mapping. :class:`~pyspynet.store.fallback.FallbackStore`
composes them so transport problems never reach the caller.
"""
