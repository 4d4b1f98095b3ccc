from .file_store import DiskSpaceInfo, DocumentStore, SaveResult, format_bytes

__all__ = ["DiskSpaceInfo", "DocumentStore", "SaveResult", "format_bytes"]
