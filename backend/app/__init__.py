"""FrameSync backend application."""
