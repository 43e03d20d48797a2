# backend/pitchcoach/models/__init__.py
from pitchcoach.models.call import Call
from pitchcoach.models.call_upload import CallUpload

__all__ = ['Call', 'CallUpload']
