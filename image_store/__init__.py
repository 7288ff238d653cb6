"""
image_store
-----------
Remote store of the motion reporting system: receives evidence images, stamps
and files them by UTC capture time, and tells clients how often to upload.
"""
