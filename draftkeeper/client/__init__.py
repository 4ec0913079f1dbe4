from draftkeeper.client.rpc import DraftBackend, HttpDraftBackend

__all__ = ["DraftBackend", "HttpDraftBackend"]
