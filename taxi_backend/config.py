# taxi_backend\config.py
# Configuration Module: Loads settings from the environment (.env supported) and sets up application logging.

import os
import logging
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

MAX_UPLOAD_SIZE = 5 * 1024 * 1024
ALLOWED_UPLOAD_EXTENSIONS = {'.csv', '.xlsx', '.xls'}


def get_settings():
    """Reads application settings from environment variables"""
    return {
        "DATABASE_PATH": os.environ.get('DATABASE_PATH', os.path.join(BASE_DIR, 'database', 'taxi_system.db')),
        "EXPORTS_DIR": os.environ.get('EXPORTS_DIR', os.path.join(BASE_DIR, 'data', 'exports')),
        "UPLOADS_DIR": os.environ.get('UPLOADS_DIR', os.path.join(BASE_DIR, 'data', 'uploads')),
        "LOG_DIR": os.environ.get('LOG_DIR', os.path.join(BASE_DIR, 'data', 'logs')),
        "LOG_LEVEL": os.environ.get('LOG_LEVEL', 'INFO').upper(),
        "PORT": int(os.environ.get('PORT', 3001)),
        "CORS_ORIGINS": os.environ.get('CORS_ORIGINS', '*'),
        "MAX_CONTENT_LENGTH": MAX_UPLOAD_SIZE,
    }


def load_email_settings():
    """Reads SMTP settings. Called again on every transport rebuild."""
    load_dotenv(override=True)
    try:
        port = int(os.environ.get('SMTP_PORT', 587))
    except ValueError:
        port = 587
    return {
        "user": os.environ.get('EMAIL_USER'),
        "password": os.environ.get('EMAIL_PASS'),
        "host": os.environ.get('SMTP_HOST', 'smtp.gmail.com'),
        "port": port,
        "timeout": float(os.environ.get('SMTP_TIMEOUT', 30)),
        "sender": os.environ.get('EMAIL_FROM') or os.environ.get('EMAIL_USER') or 'sistema@taxi.com',
    }


def configure_logging(log_dir=None, level='INFO'):
    """Configures root logging with a console handler and, if log_dir is given, a log file"""
    handlers = [logging.StreamHandler()]
    if log_dir:
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(os.path.join(log_dir, 'app.log')))

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )
