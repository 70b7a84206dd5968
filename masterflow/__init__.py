"""masterflow: audio mastering service.

The signal pipeline lives in ``masterflow.dsp_engine``; the session,
job queue, storage and HTTP layers sit on top of it.
"""
