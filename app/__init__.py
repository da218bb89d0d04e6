"""
MediAssist - Clinical Notes Backend

A FastAPI service where doctors manage patients, upload consultation audio
and receive AI-generated transcripts, summaries and translations.
"""

__version__ = "1.0.0"
