"""
Terminal Logging Utility for the Assessment Engine

Colored console output for request tracing, scoring decisions
and proctoring escalations.
"""
import logging
import sys
import uuid
from datetime import datetime
from typing import Optional


# ============================================================================
# ANSI Colors for Terminal
# ============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BG_RED = "\033[41m"


# ============================================================================
# Logger Configuration
# ============================================================================

class ColoredFormatter(logging.Formatter):
    """Colored formatter for terminal output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM + Colors.WHITE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BG_RED + Colors.WHITE,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        level_str = f"{color}{record.levelname:8}{Colors.RESET}"
        time_str = f"{Colors.DIM}{timestamp}{Colors.RESET}"
        name_str = f"{Colors.CYAN}{record.name}{Colors.RESET}"

        message = f"{time_str} {level_str} [{name_str}] {record.getMessage()}"

        if hasattr(record, "extra_data") and record.extra_data:
            for key, value in record.extra_data.items():
                message += f"\n    {Colors.DIM}|- {key}: {Colors.RESET}{value}"

        return message


def setup_logger(name: str = "assessment_engine", level: int = logging.DEBUG) -> logging.Logger:
    """Configure colored logger for terminal output."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    handler.setLevel(level)
    logger.addHandler(handler)

    return logger


def configure_package_logging(level: str = "INFO") -> logging.Logger:
    """Attach the colored handler to the package root logger."""
    return setup_logger("assessment_engine", getattr(logging, level.upper(), logging.INFO))


api_logger = setup_logger("API")


def generate_request_id() -> str:
    """Generate unique request ID."""
    return f"req_{uuid.uuid4().hex[:8]}"


# ============================================================================
# Logging Functions
# ============================================================================

def log_request_end(request_id: str, method: str, path: str, status: int, duration_ms: int):
    """Log completed request."""
    color = Colors.GREEN if status < 400 else Colors.RED
    api_logger.info(
        f"{method} {path} [{request_id}] -> {color}{status}{Colors.RESET} in {duration_ms}ms"
    )


def log_error(error_type: str, message: str, request_id: Optional[str] = None):
    """Log error."""
    api_logger.error(f"{Colors.BOLD}{error_type}{Colors.RESET}: {message}")
    if request_id:
        api_logger.error(f"  Request ID: {request_id}")


def log_startup(service_name: str, port: int):
    """Log service startup."""
    print(f"\n{Colors.BOLD}{Colors.GREEN}{'='*60}{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.GREEN}  {service_name} STARTED{Colors.RESET}")
    print(f"{Colors.BOLD}{Colors.GREEN}{'='*60}{Colors.RESET}")
    print(f"  Running on: {Colors.CYAN}http://localhost:{port}{Colors.RESET}")
    print(f"  Docs: {Colors.CYAN}http://localhost:{port}/docs{Colors.RESET}")
    print(f"\n{Colors.DIM}Waiting for requests...{Colors.RESET}\n")
