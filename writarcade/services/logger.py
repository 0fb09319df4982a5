"""
WritArcade Logging System

Clean terminal output for production + detailed file logging for debugging.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


class WritArcadeLogger:
    """
    Two-mode logging system:
    - Terminal: Clean, timestamped panel lifecycle events only
    - Debug file: Full detailed logs for troubleshooting
    """

    def __init__(self, debug_mode: bool = False, settings=None):
        self.debug_mode = debug_mode
        self.settings = settings
        self.log_dir = Path("logs")

        if settings and getattr(settings, "debug_api_calls", False):
            debug_log_dir = Path(settings.debug_log_dir)
            debug_log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.api_calls_log = debug_log_dir / f"api_calls_{timestamp}.jsonl"

        if debug_mode:
            self.log_dir.mkdir(exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file = self.log_dir / f"writarcade_debug_{timestamp}.txt"

            self.file_logger = logging.getLogger("writarcade_debug")
            self.file_logger.setLevel(logging.DEBUG)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.file_logger.addHandler(file_handler)

            print(f"📝 Debug mode enabled. Logging to: {log_file}")

    def _timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _terminal_log(self, emoji: str, message: str, color: str = ""):
        """Print clean log to terminal"""
        colors = {
            "green": "\033[92m",
            "blue": "\033[94m",
            "yellow": "\033[93m",
            "red": "\033[91m",
            "cyan": "\033[96m",
            "reset": "\033[0m"
        }

        color_code = colors.get(color, "")
        reset = colors["reset"] if color_code else ""

        print(f"{color_code}[{self._timestamp()}] {emoji} {message}{reset}")

    def _debug_log(self, level: str, component: str, message: str, data: Optional[dict] = None):
        """Write detailed log to debug file"""
        if self.debug_mode and hasattr(self, 'file_logger'):
            log_msg = f"{component} | {message}"
            if data:
                log_msg += f" | Data: {data}"

            log_func = getattr(self.file_logger, level.lower(), self.file_logger.info)
            log_func(log_msg)

    # ===== Panel Lifecycle =====

    def panel_started(self, session_id: str, panel_index: int, max_panels: int, phase: str = ""):
        msg = f"Panel {panel_index}/{max_panels} started (Session: {session_id[:8]})"
        if phase:
            msg += f" [{phase}]"
        self._terminal_log("🎬", msg, "cyan")
        self._debug_log("info", "PANEL", "Started", {
            "session_id": session_id,
            "panel_index": panel_index,
            "phase": phase
        })

    def panel_ready(self, session_id: str, panel_index: int, option_count: int,
                    duration: Optional[float] = None):
        msg = f"Panel {panel_index} ready with {option_count} options (Session: {session_id[:8]})"
        if duration:
            msg += f" in {duration:.1f}s"
        self._terminal_log("✅", msg, "green")
        self._debug_log("info", "PANEL", "Ready", {
            "session_id": session_id,
            "panel_index": panel_index,
            "option_count": option_count,
            "duration": duration
        })

    def panel_failed(self, session_id: str, panel_index: int, error: str):
        msg = f"Panel {panel_index} failed (Session: {session_id[:8]}) - {error}"
        self._terminal_log("❌", msg, "red")
        self._debug_log("error", "PANEL", "Failed", {
            "session_id": session_id,
            "panel_index": panel_index,
            "error": error
        })

    def image_generated(self, session_id: str, panel_index: int, backend_id: str, success: bool):
        if success:
            self._terminal_log("🎨", f"Panel {panel_index} image from {backend_id}", "blue")
        else:
            self._terminal_log("🖼️", f"Panel {panel_index} continues without image", "yellow")
        self._debug_log("info", "IMAGE", "Generated" if success else "Degraded", {
            "session_id": session_id,
            "panel_index": panel_index,
            "backend_id": backend_id
        })

    def story_complete(self, session_id: str, panels: int):
        msg = f"Story complete after {panels} panels (Session: {session_id[:8]})"
        self._terminal_log("🏁", msg, "green")
        self._debug_log("info", "STORY", "Complete", {
            "session_id": session_id,
            "panels": panels
        })

    def error(self, component: str, message: str, error: Exception = None):
        msg = f"Error in {component}: {message}"
        if error:
            msg += f" ({type(error).__name__})"
        self._terminal_log("⚠️", msg, "red")
        self._debug_log("error", component, message, {
            "error_type": type(error).__name__ if error else None,
            "error_message": str(error) if error else None
        })

    # ===== Debug Logging =====

    def _write_json_log(self, log_file: Path, data: Dict[str, Any]):
        """Write structured JSON log entry"""
        try:
            with open(log_file, 'a') as f:
                json.dump(data, f)
                f.write('\n')
        except OSError as e:
            self.error("LOGGER", f"Failed to write JSON log: {e}")

    def llm_api_call(self, model: str, role: str, latency: Optional[float] = None,
                     output_chars: int = 0, status: str = "success"):
        """Log one LLM call (only with debug_api_calls enabled)"""
        if not self.settings or not getattr(self.settings, "debug_api_calls", False):
            return

        latency_str = f" in {latency:.1f}s" if latency else ""
        msg = f"API {model} ({role}): {output_chars} chars{latency_str}"

        emoji = "🤖" if status == "success" else "⚠️"
        color = "green" if status == "success" else "yellow"
        self._terminal_log(emoji, msg, color)

        if hasattr(self, 'api_calls_log'):
            self._write_json_log(self.api_calls_log, {
                "timestamp": datetime.now().isoformat(),
                "type": "llm_api_call",
                "model": model,
                "role": role,
                "output_chars": output_chars,
                "latency_seconds": latency,
                "status": status
            })


# Global logger instance
_logger: Optional[WritArcadeLogger] = None


def get_logger(settings=None) -> WritArcadeLogger:
    """Get global logger instance"""
    global _logger
    if _logger is None:
        import os
        debug_mode = os.getenv("DEBUG_MODE", "false").lower() == "true"
        _logger = WritArcadeLogger(debug_mode=debug_mode, settings=settings)
    return _logger


def init_logger(debug_mode: bool = False, settings=None):
    """Initialize logger with specific debug mode and settings"""
    global _logger
    _logger = WritArcadeLogger(debug_mode=debug_mode, settings=settings)
    return _logger
