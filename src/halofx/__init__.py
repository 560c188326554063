"""halofx - Floating Device Video Presentation.

Turns a screen recording into a polished "floating window" clip:
1. Fit: scale the video into a padded 1920x1080 canvas without upscaling
2. Mask: round its corners and outline it with a translucent frame
3. Compose: center everything on a background in a single ffmpeg pass
"""

__version__ = "0.1.0"
