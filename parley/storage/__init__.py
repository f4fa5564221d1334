"""Local storage backends for standalone runs."""

from parley.storage.attachments import LocalAttachmentStore

__all__ = ["LocalAttachmentStore"]
