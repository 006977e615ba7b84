"""
Ingestion Configuration - thresholds, allow-lists and environment settings.
"""
import os


class Config:
    # Shared by the format detector and upload filename validation
    ALLOWED_EXTENSIONS = ('csv', 'xlsx', 'xls', 'pdf')

    # Categorization
    MIN_CONFIDENCE = 0.3
    RULE_CONFIDENCE = 1.0
    FALLBACK_CATEGORY = "Misc"
    FALLBACK_CONFIDENCE = 0.1
    SUGGESTION_MIN_SCORE = 0.1

    # Parsing
    CSV_ENCODINGS = ('utf-8-sig', 'cp1252', 'latin-1')
    PDF_TEXT_PREVIEW_CHARS = 500

    # Service
    MAX_UPLOAD_MB = int(os.environ.get('MAX_UPLOAD_MB', 10))
    LOG_FILE = os.environ.get('LOG_FILE', 'server.log')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://localhost:3000'
    ).split(',')

    SUPABASE_URL = os.environ.get('SUPABASE_URL')
    SUPABASE_KEY = os.environ.get('SUPABASE_KEY')
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get('SUPABASE_SERVICE_ROLE_KEY')
    TRANSACTIONS_TABLE = "transactions"
    RULES_TABLE = "rules"
