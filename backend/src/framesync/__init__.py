"""FrameSync realtime watch party core."""
