"""SD Img2Img Bridge.

An image-to-image graph node that drives a Stable Diffusion WebUI server,
plus a small REST bridge for hosting it outside the editor.
"""
