"""
Audio validation and local persistence
"""

import asyncio
import os
import random
import time
from typing import Tuple, Optional, Dict, Any
from mutagen import File as MutagenFile
from fastapi import HTTPException, status, UploadFile
from app.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class AudioProcessor:
    """Validates uploaded consultation audio and writes it to the uploads directory"""

    def __init__(self, upload_dir: Optional[str] = None):
        self.upload_dir = upload_dir or settings.upload_dir

    async def read_and_validate(self, file: UploadFile) -> Tuple[bytes, str]:
        """
        Reads the upload into memory and validates it.
        Returns the audio bytes and the effective content type.
        """
        audio_data = await file.read()
        if not audio_data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No audio data received",
            )

        if len(audio_data) > settings.max_file_size_bytes:
            logger.warning(f"Rejected upload of {len(audio_data)} bytes (limit {settings.max_file_size_mb} MB)")
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Audio file exceeds {settings.max_file_size_mb} MB",
            )

        content_type = file.content_type or "application/octet-stream"
        if content_type not in settings.supported_audio_formats:
            logger.warning(f"Unsupported audio format: {content_type}")
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail=f"Unsupported audio format: {content_type}",
            )

        if content_type == "application/octet-stream":
            content_type = self.detect_content_type(audio_data, file.filename)

        logger.info(f"Received {len(audio_data)} bytes of audio data ({content_type}).")
        return audio_data, content_type

    def build_filename(self, content_type: str) -> str:
        """
        Unique name of the form <epoch-ms>-<random><ext>.
        The extension follows the validated content type, never the client's
        filename, since /uploads serves files by extension.
        """
        ext = self._get_extension_from_content_type(content_type)
        unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        return f"{unique_suffix}{ext}"

    async def save(self, audio_data: bytes, filename: str) -> str:
        """Writes the audio to the uploads directory and returns its path."""
        file_path = self.path_for(filename)
        await asyncio.to_thread(self._write, file_path, audio_data)
        logger.info(f"Audio saved locally to {file_path}")
        return file_path

    def path_for(self, filename: str) -> str:
        return os.path.join(self.upload_dir, os.path.basename(filename))

    def _write(self, file_path: str, audio_data: bytes):
        os.makedirs(self.upload_dir, exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(audio_data)

    async def cleanup(self, file_path: Optional[str]):
        """Safely delete a local audio file."""
        if file_path and os.path.exists(file_path):
            try:
                os.unlink(file_path)
                logger.info(f"Removed local audio file: {file_path}")
            except OSError as e:
                logger.error(f"Error removing file {file_path}: {e}")

    def _get_extension_from_content_type(self, content_type: str) -> str:
        """Maps content type to file extension."""
        return {
            "audio/mpeg": ".mp3",
            "audio/mp3": ".mp3",
            "audio/wav": ".wav",
            "audio/x-wav": ".wav",
            "audio/mp4": ".m4a",
            "audio/m4a": ".m4a",
            "audio/x-m4a": ".m4a",
            "audio/aac": ".aac",
            "audio/ogg": ".ogg",
            "audio/webm": ".webm",
            "audio/flac": ".flac",
        }.get(content_type, ".m4a")

    def detect_content_type(self, audio_data: bytes, filename: Optional[str]) -> str:
        """Detects Content-Type based on file signature or filename."""
        # 'ftyp' sits at offset 4 in MP4/M4A containers
        if b'ftyp' in audio_data[4:12]:
            return "audio/mp4"

        signatures = {
            b'ID3': "audio/mpeg",
            b'\xff\xfb': "audio/mpeg",
            b'\xff\xf3': "audio/mpeg",
            b'\xff\xf2': "audio/mpeg",
            b'RIFF': "audio/wav",
            b'OggS': "audio/ogg",
            b'fLaC': "audio/flac",
            b'\x1a\x45\xdf\xa3': "audio/webm",
        }

        for signature, detected_type in signatures.items():
            if audio_data.startswith(signature):
                logger.info(f"Detected content type: {detected_type} (signature)")
                return detected_type

        if filename:
            ext_map = {
                '.mp3': 'audio/mpeg',
                '.wav': 'audio/wav',
                '.m4a': 'audio/mp4',
                '.mp4': 'audio/mp4',
                '.ogg': 'audio/ogg',
                '.webm': 'audio/webm',
                '.flac': 'audio/flac',
            }
            _, ext = os.path.splitext(filename)
            if ext.lower() in ext_map:
                logger.info(f"Guessed content type from filename: {ext_map[ext.lower()]}")
                return ext_map[ext.lower()]

        logger.warning("Could not detect specific audio type, assuming audio/mp4.")
        return "audio/mp4"

    def extract_metadata(self, file_path: str) -> Dict[str, Any]:
        """Extracts duration, sample rate and channels using mutagen."""
        try:
            audio = MutagenFile(file_path)
            if audio is None:
                raise ValueError("Could not load audio file with mutagen.")

            return {
                "duration_seconds": float(getattr(audio.info, 'length', 0.0) or 0.0),
                "sample_rate": getattr(audio.info, 'sample_rate', None),
                "channels": getattr(audio.info, 'channels', None),
            }
        except Exception as e:
            logger.warning(f"Could not extract metadata using mutagen: {e}")
            return {}


audio_processor = AudioProcessor()
