"""Optional remote database mirror (export and connectivity test only)."""

from .client import RemoteConfigError, RemoteError, RemoteMirror, medication_record  # re-export
