"""
Core application engine for orchestrating the download process.

This package contains the primary logic. The `DownloadManager` acts
as the high-level session coordinator, the `PlaylistScheduler` bounds how many
tracks run at once, and each `TrackPipeline` carries one track from search to
the tagged file on disk.
"""
