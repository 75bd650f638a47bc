"""
Storage package for the gateway: the versioned artifact store.
"""
