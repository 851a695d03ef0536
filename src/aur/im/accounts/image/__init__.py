"""
Images and Avatars

Key Components:
- codec.py: magic-byte format detection and lossless WebP transcoding (Pillow)
- avatar.py: avatar file probing and canonical single-file storage
"""
