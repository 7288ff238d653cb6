"""
motion_client
-------------
Capture side of the motion reporting system: watches a camera, classifies
motion and uploads evidence frames to the image store.
"""
