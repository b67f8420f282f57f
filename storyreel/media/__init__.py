"""Media assembly: overlay compilation, background assets, the FFmpeg
encoder, request workspaces, and the export pipeline tying them together.
"""
