"""
PDF Drop Pipeline
=================
Turns a PDF dropped on a drawing canvas into one image element per page.

Architecture:
    - Event Interceptor: Takes PDF drops away from the host's own handlers
    - Conversion Client: Sends the PDF to the remote rasterization service
    - Archive Reader: Lists the returned page images in numeric page order
    - Scene Inserter: Registers each page as an asset and stacks it on the canvas
    - Drop Pipeline: Runs the above in sequence and contains every failure

Version: 1.0.0
"""

__version__ = "1.0.0"
