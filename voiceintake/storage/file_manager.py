"""File management module for completed interview records."""

import json
import logging
import shutil
from pathlib import Path
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, List

from ..models.interview import InterviewSession

logger = logging.getLogger(__name__)

INTERVIEW_FILE = "interview.json"
TRANSCRIPT_FILE = "transcript.txt"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class FileManager:
    """Stores completed interviews under ``<data_dir>/sessions/<session_id>/``."""

    def __init__(self, data_dir: str = "./data"):
        """Create the archive directories under ``data_dir`` if they are missing."""
        self.data_dir = Path(data_dir)
        self.sessions_dir = self.data_dir / "sessions"
        self.logs_dir = self.data_dir / "logs"

        self._ensure_directories()

        logger.info(f"Interview archive at {self.sessions_dir}")

    def _ensure_directories(self) -> None:
        for directory in (self.data_dir, self.sessions_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def get_session_path(self, session_id: str) -> Path:
        return self.sessions_dir / session_id

    def interview_to_dict(self, session: InterviewSession) -> Dict[str, Any]:
        """Serialize an interview for storage.

        Args:
            session: The session to serialize

        Returns:
            JSON-ready dictionary using the protocol's camelCase names for intake and summary
        """
        return {
            "session_id": session.session_id,
            "status": session.status.value,
            "language": session.language,
            "started_at": _iso(session.started_at),
            "completed_at": _iso(session.completed_at),
            "summary_degraded": session.summary_degraded,
            "intake": session.intake.model_dump(by_alias=True, exclude_none=True) if session.intake else None,
            "transcript": [m.model_dump() for m in session.transcript],
            "summary": session.summary.model_dump(by_alias=True) if session.summary else None,
        }

    def save_interview(self, session: InterviewSession) -> str:
        """Write ``interview.json`` and a readable ``transcript.txt``.

        Returns:
            Path to the saved interview file
        """
        session_path = self.get_session_path(session.session_id)
        session_path.mkdir(parents=True, exist_ok=True)

        interview_file = session_path / INTERVIEW_FILE
        with open(interview_file, 'w', encoding='utf-8') as f:
            json.dump(self.interview_to_dict(session), f, indent=2, ensure_ascii=False)

        with open(session_path / TRANSCRIPT_FILE, 'w', encoding='utf-8') as f:
            for message in session.transcript:
                speaker = "Assistant" if message.role == "assistant" else "Patient"
                f.write(f"{speaker}: {message.content}\n\n")

        logger.info(f"Interview saved: {interview_file} ({len(session.transcript)} messages)")
        return str(interview_file)

    def load_interview(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Load a stored interview.

        Args:
            session_id: Session identifier

        Returns:
            The stored dictionary, or None if not found or unreadable
        """
        interview_file = self.get_session_path(session_id) / INTERVIEW_FILE

        if not interview_file.exists():
            logger.warning(f"Interview file not found: {interview_file}")
            return None

        try:
            with open(interview_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading interview {session_id}: {e}")
            return None

    def _session_dirs(self) -> List[Path]:
        return sorted(path for path in self.sessions_dir.iterdir() if path.is_dir())

    def list_sessions(self) -> List[str]:
        """Session IDs that have a stored interview, sorted."""
        return [path.name for path in self._session_dirs() if (path / INTERVIEW_FILE).exists()]

    def cleanup_old_sessions(self, max_age_days: int = 30) -> int:
        """Delete stored interviews not modified within ``max_age_days``.

        Returns:
            Number of session directories removed
        """
        cutoff = datetime.now() - timedelta(days=max_age_days)
        removed = []
        for path in self._session_dirs():
            if datetime.fromtimestamp(path.stat().st_mtime) < cutoff:
                shutil.rmtree(path)
                removed.append(path.name)

        if removed:
            logger.info(f"Removed {len(removed)} interviews older than {max_age_days} days: {', '.join(removed)}")
        return len(removed)

    def get_storage_stats(self) -> Dict[str, Any]:
        sizes = [sum(f.stat().st_size for f in path.rglob("*") if f.is_file()) for path in self._session_dirs()]
        total = sum(sizes)
        return {
            "session_count": len(sizes),
            "total_size_bytes": total,
            "total_size_mb": round(total / (1024 * 1024), 2),
            "data_directory": str(self.data_dir),
        }
